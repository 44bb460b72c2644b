import logging
import os
import sys
from pathlib import Path

from core.logger import setup_logging

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))


def main():
    """Main entry point for the Discipline Coach CLI."""
    verbose = os.getenv("DISCIPLINE_COACH_VERBOSE", "0").lower() in {"1", "true", "yes"}
    setup_logging(console_level=logging.DEBUG if verbose else logging.WARNING)

    from cli.coach_cmd import coach
    coach()


if __name__ == "__main__":
    main()
