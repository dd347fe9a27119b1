#!/usr/bin/env python3
"""
figma-namer — batch layer naming client

Counts the nameable layers of a Figma design, asks a naming server to name
them with a vision-language model, follows the live progress stream, and
writes the suggested names to a JSON or CSV file.

Usage:
    python figma-namer.py name --url https://www.figma.com/design/<key>/... --output names.csv

Credentials come from flags or the environment (FIGMA_TOKEN, GEMINI_API_KEY,
ANTHROPIC_API_KEY, OPENAI_API_KEY); a .env file in the working directory is
loaded automatically.

This file is a thin wrapper around the figma-namer packages.
For the modular implementation, see the namer_platform/, contracts/, and cli/ directories.
"""

from cli.commands import main

if __name__ == "__main__":
    main()
