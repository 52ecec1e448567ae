#!/usr/bin/env python
"""
Outreach sequence management script.

Manual and cron-driven entry points for the sequence execution engine.

Usage:
    python manage_sequences.py sweep [--tenant TENANT]                      # Execute all due enrollments
    python manage_sequences.py execute SEQUENCE_ID [--tenant TENANT]        # Execute one sequence
    python manage_sequences.py state SEQUENCE_ID PROSPECT_ID [--tenant T]   # Show a prospect's progress
    python manage_sequences.py create-tables                                # Create database tables
"""
import argparse
import asyncio
import json
import sys
from datetime import datetime


def _parse_now(value):
    if value is None:
        return None
    return datetime.fromisoformat(value).replace(tzinfo=None)


async def run_execute(sequence_id, tenant_id, now):
    from app.features.business_automations.outreach_sequences.tasks import build_driver

    summary = await build_driver(tenant_id).execute(sequence_id=sequence_id, now=now)
    return summary.model_dump(mode="json")


async def run_state(sequence_id, prospect_id, tenant_id):
    from app.features.core.database import async_session
    from app.features.business_automations.outreach_sequences.services.enrollments import EnrollmentService

    async with async_session() as db:
        state = await EnrollmentService(db, tenant_id).get_enrollment_state(sequence_id, prospect_id)
        return state.model_dump(mode="json")


def main():
    """Parse arguments and run the appropriate command."""
    parser = argparse.ArgumentParser(description="Outreach sequence management script")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    sweep_parser = subparsers.add_parser("sweep", help="Execute all due enrollments")
    sweep_parser.add_argument("--tenant", "-t", default="global", help="Tenant to sweep (default: all)")
    sweep_parser.add_argument("--now", help="Override current time (ISO 8601, UTC)")

    execute_parser = subparsers.add_parser("execute", help="Execute due enrollments of one sequence")
    execute_parser.add_argument("sequence_id", help="Sequence ID")
    execute_parser.add_argument("--tenant", "-t", default="global", help="Owning tenant")
    execute_parser.add_argument("--now", help="Override current time (ISO 8601, UTC)")

    state_parser = subparsers.add_parser("state", help="Show a prospect's progress through a sequence")
    state_parser.add_argument("sequence_id", help="Sequence ID")
    state_parser.add_argument("prospect_id", help="Prospect ID")
    state_parser.add_argument("--tenant", "-t", default="global", help="Owning tenant")

    subparsers.add_parser("create-tables", help="Create database tables")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    from app.features.core.logging import setup_logging
    from app.features.business_automations.outreach_sequences.exceptions import SequenceEngineError

    setup_logging()

    try:
        if args.command == "sweep":
            result = asyncio.run(run_execute(None, args.tenant, _parse_now(args.now)))
            print(json.dumps(result, indent=2))

        elif args.command == "execute":
            result = asyncio.run(run_execute(args.sequence_id, args.tenant, _parse_now(args.now)))
            print(json.dumps(result, indent=2))

        elif args.command == "state":
            result = asyncio.run(run_state(args.sequence_id, args.prospect_id, args.tenant))
            print(json.dumps(result, indent=2))

        elif args.command == "create-tables":
            from app.features.core.database import create_tables
            print("Creating tables...")
            asyncio.run(create_tables())

    except SequenceEngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
