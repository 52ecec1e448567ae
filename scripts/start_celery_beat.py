#!/usr/bin/env python3
"""
Start the Celery beat scheduler that triggers sequence sweeps.
"""
import os
import sys
import subprocess
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

def start_beat():
    """Start Celery beat scheduler."""
    from app.features.core.config import get_settings

    print("Starting Celery beat scheduler...")

    # Set environment
    os.environ.setdefault("PYTHONPATH", str(project_root))

    cmd = [
        "celery",
        "-A", "app.features.core.celery_app:celery_app",
        "beat",
        "--loglevel=info",
        "--schedule=/tmp/celerybeat-schedule"
    ]

    interval = get_settings().SEQUENCE_SWEEP_INTERVAL_SECONDS
    print(f"Command: {' '.join(cmd)}")
    print(f"Scheduled: run-due-sequences every {interval:g}s")
    print("Press Ctrl+C to stop")
    print("-" * 60)

    try:
        subprocess.run(cmd, cwd=project_root, check=True)
    except KeyboardInterrupt:
        print("\nCelery beat stopped")
    except subprocess.CalledProcessError as e:
        print(f"Celery beat failed: {e}")
        return 1

    return 0

if __name__ == "__main__":
    sys.exit(start_beat())
