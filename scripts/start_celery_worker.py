#!/usr/bin/env python3
"""
Start a Celery worker for the outreach sequence queues.
"""
import os
import sys
import subprocess
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

def start_worker(concurrency: int = 2):
    """Start Celery worker."""
    print("Starting Celery worker...")

    # Set environment
    os.environ.setdefault("PYTHONPATH", str(project_root))

    cmd = [
        "celery",
        "-A", "app.features.core.celery_app:celery_app",
        "worker",
        "--loglevel=info",
        f"--concurrency={concurrency}",
        "--queues=default,outreach_sequences"
    ]

    print(f"Command: {' '.join(cmd)}")
    print("Queues: default, outreach_sequences")
    print("Press Ctrl+C to stop")
    print("-" * 60)

    try:
        subprocess.run(cmd, cwd=project_root, check=True)
    except KeyboardInterrupt:
        print("\nCelery worker stopped")
    except subprocess.CalledProcessError as e:
        print(f"Celery worker failed: {e}")
        return 1

    return 0

if __name__ == "__main__":
    sys.exit(start_worker(int(sys.argv[1]) if len(sys.argv) > 1 else 2))
