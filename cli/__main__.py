"""
Entry point for running figma-namer as a module.

Usage:
    python -m cli analyze --url https://www.figma.com/design/KEY/Name
    python -m cli name --url https://www.figma.com/design/KEY/Name --output names.csv
    python -m cli export SESSION_ID --format csv
"""

from .commands import main

if __name__ == "__main__":
    main()
