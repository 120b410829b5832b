#!/usr/bin/env python3
"""
Main entry point for running the daylog service.

Usage:
    python -m daylog.main --port 9999 --retain 7
    python -m daylog.main --user admin --pass secret --data-dir /var/lib/daylog
"""

import argparse
import sys
from pathlib import Path

import uvicorn

from daylog.core.store import LineStore, RetentionScheduler, RetentionSweeper
from daylog.server import ServerConfig, create_app
from daylog.utils.config import get_config
from daylog.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="daylog - day-partitioned log storage service"
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML configuration file merged over the defaults",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: 0.0.0.0)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: 9999)",
    )

    parser.add_argument(
        "--retain",
        type=int,
        default=None,
        help="Days of logs to keep (default: 7)",
    )

    parser.add_argument(
        "--user",
        type=str,
        default=None,
        help="Basic auth user for /read (default: no auth)",
    )

    parser.add_argument(
        "--pass",
        dest="password",
        type=str,
        default=None,
        help="Basic auth password for /read",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory for daily partition files (default: ./data)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["json", "console"],
        help="Log output format (default: json)",
    )

    return parser.parse_args(argv)


def build_config(args):
    """Load configuration and apply command-line overrides."""
    config = get_config(args.config)

    overrides = {
        "server.host": args.host,
        "server.port": args.port,
        "server.auth_user": args.user,
        "server.auth_pass": args.password,
        "store.data_dir": args.data_dir,
        "retention.retain_days": args.retain,
        "logging.level": args.log_level,
        "logging.format": args.log_format,
    }
    for key, value in overrides.items():
        if value is not None:
            config.set(key, value)

    return config


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    config = build_config(args)

    configure_logging(
        log_level=config.get("logging.level", "INFO"),
        log_format=config.get("logging.format", "json"),
        log_output=config.get("logging.output", "stdout"),
    )

    data_dir = Path(config.get("store.data_dir", "data"))

    try:
        store = LineStore(
            directory=data_dir,
            fsync_on_append=config.get("store.fsync_on_append", False),
            default_timeout=config.get("store.operation_timeout"),
        )
    except OSError as e:
        logger.critical("Cannot create data directory", data_dir=str(data_dir), error=str(e))
        sys.exit(1)

    sweeper = RetentionSweeper(store, retain_days=config.get("retention.retain_days", 7))
    scheduler = RetentionScheduler(
        sweeper,
        interval_seconds=config.get("retention.interval_hours", 24) * 3600,
    )

    app = create_app(store, ServerConfig.from_config(config))

    host = config.get("server.host", "0.0.0.0")
    port = config.get("server.port", 9999)

    logger.info(
        "Starting daylog",
        host=host,
        port=port,
        data_dir=str(data_dir),
        retain_days=sweeper.retain_days,
    )

    scheduler.start()
    try:
        uvicorn.run(app, host=host, port=port, log_config=None)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    finally:
        scheduler.stop()
        logger.info("daylog stopped")


if __name__ == "__main__":
    main()
