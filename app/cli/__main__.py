"""
Entry point for CLI module execution.
Allows running: python -m app.cli
"""
import sys

from app.cli.job_status import main

if __name__ == '__main__':
    sys.exit(main())
