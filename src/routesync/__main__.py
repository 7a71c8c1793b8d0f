"""Entry point for running routesync as a module.

Usage:
    python -m routesync [command] [options]
"""

from routesync.cli import main

if __name__ == "__main__":
    main()
