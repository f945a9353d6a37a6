"""
Main application entry point for Alert Ticketer.

This module provides the command-line entry point that configures logging and
runs the webhook server under uvicorn.
"""

import sys

import structlog
import uvicorn

from . import __version__
from .config import config
from .logging_setup import configure_logging
from .webhook import create_app


logger = structlog.get_logger(__name__)


def run_server():
    """Run the webhook server until interrupted."""
    configure_logging(config.log_level)

    logger.info(
        "Starting Alert Ticketer",
        version=__version__,
        host=config.host,
        port=config.port,
        state_dir=config.state_dir,
        ticket_policy=config.ticket_policy
    )

    uvicorn.run(
        create_app(config=config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        access_log=True
    )


def cli():
    """Command-line interface entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Alert Ticketer - alert webhook to email and Azure DevOps work items"
    )
    parser.add_argument(
        "--host",
        default=config.host,
        help="Server host (default: %(default)s)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=config.port,
        help="Server port (default: %(default)s)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=config.log_level.upper(),
        help="Log level (default: %(default)s)"
    )
    parser.add_argument(
        "--state-dir",
        default=config.state_dir,
        help="Directory for the alert ID records; must survive restarts (default: %(default)s)"
    )
    parser.add_argument(
        "--ticket-policy",
        choices=["always_create", "reuse_open"],
        default=config.ticket_policy,
        help="Work item policy for firing alerts (default: %(default)s)"
    )

    args = parser.parse_args()

    # Update config with command-line arguments
    config.host = args.host
    config.port = args.port
    config.log_level = args.log_level
    config.state_dir = args.state_dir
    config.ticket_policy = args.ticket_policy

    try:
        run_server()
    except KeyboardInterrupt:
        print("\nApplication interrupted by user")
    except Exception as e:
        print(f"Application failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
