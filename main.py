"""
Entry point for Alert Ticketer.

This module provides the main entry point that delegates to the package's CLI.
"""

from alert_ticketer.main import cli

if __name__ == "__main__":
    cli()
