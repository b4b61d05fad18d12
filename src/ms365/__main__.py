"""Entry point for running ms365 as a module.

Usage:
    python -m ms365 validate-config
    python -m ms365 --help
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything reads CLIMICROSOFT365_* variables

from ms365.cli import main  # noqa: E402

if __name__ == "__main__":
    main()
