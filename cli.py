"""CLI entry point - wrapper for running from a checkout

Runs the main CLI from the modular cli package: python cli.py status
"""

from cli.main import main

if __name__ == "__main__":
    main()
