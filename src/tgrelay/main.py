"""Main entry point for tgrelay."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


def setup_logging(
    level: str = "INFO",
    debug: bool = False,
    log_format: str = "text",
    log_to_file: bool = False,
    log_file_path: Path | None = None,
    log_file_max_bytes: int = 10 * 1024 * 1024,
    log_file_backup_count: int = 5,
) -> None:
    """Configure logging with console and optional rotating file output.

    Every handler masks session strings, phone numbers and passwords, and
    tags records with the request correlation ID.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR)
        debug: If True, overrides level to DEBUG
        log_format: "text" or "json"
        log_to_file: Enable file logging in addition to console
        log_file_path: Path to log file
        log_file_max_bytes: Maximum size per log file before rotation
        log_file_backup_count: Number of rotated backup files to keep
    """
    from tgrelay.utils.logging import (
        CorrelationIDFilter,
        JSONFormatter,
        LogSanitizer,
        SanitizingFormatter,
    )

    effective_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(effective_level)
    root_logger.handlers.clear()

    formatter: logging.Formatter
    if log_format == "json":
        formatter = JSONFormatter()
    else:
        formatter = SanitizingFormatter(
            "%(asctime)s [%(levelname)s] [%(correlation_id)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_to_file and log_file_path:
        try:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    log_file_path,
                    maxBytes=log_file_max_bytes,
                    backupCount=log_file_backup_count,
                    encoding="utf-8",
                )
            )
        except OSError as e:
            # Graceful degradation - continue with console-only logging
            print(f"Failed to initialize file logging: {e}. Using console-only logging.")

    for handler in handlers:
        handler.setLevel(effective_level)
        handler.setFormatter(formatter)
        # Filters are not inherited by child loggers, so they go on handlers
        handler.addFilter(LogSanitizer())
        handler.addFilter(CorrelationIDFilter())
        root_logger.addHandler(handler)

    # Telethon is chatty at INFO
    logging.getLogger("telethon").setLevel(max(effective_level, logging.WARNING))

    if len(handlers) > 1:
        logging.info(f"File logging enabled: {log_file_path}")


def main() -> None:
    """Run the tgrelay web application."""
    import argparse

    import uvicorn

    from tgrelay import __version__
    from tgrelay.config import Settings, get_settings, reset_settings

    env_settings = get_settings()

    parser = argparse.ArgumentParser(
        description="tgrelay - HTTP relay for Telegram accounts with keyword auto-replies"
    )
    parser.add_argument(
        "--host",
        default=env_settings.host,
        help=f"Host to bind to (default: {env_settings.host}, env: TGRELAY_HOST)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=env_settings.port,
        help=f"Port to bind to (default: {env_settings.port}, env: TGRELAY_PORT)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=env_settings.debug,
        help="Enable debug mode (env: TGRELAY_DEBUG)",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help=f"Data directory path (default: {env_settings.data_dir}, env: TGRELAY_DATA_DIR)",
    )
    parser.add_argument(
        "--log-level",
        default=env_settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {env_settings.log_level}, env: TGRELAY_LOG_LEVEL)",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration and exit without starting server",
    )
    parser.add_argument("--version", action="version", version=f"tgrelay {__version__}")

    args = parser.parse_args()

    reset_settings()
    cli_overrides: dict[str, object] = {
        "host": args.host,
        "port": args.port,
        "debug": args.debug,
        "log_level": args.log_level,
    }
    if args.data_dir:
        cli_overrides["data_dir"] = Path(args.data_dir)

    settings = Settings(**cli_overrides)  # type: ignore[arg-type]

    if args.validate:
        settings.print_config()
        print()
        errors = settings.ensure_data_dirs()
        warnings = settings.check()
        if errors:
            print("Configuration validation failed:")
            for error in errors:
                print(f"\n{error}")
            sys.exit(1)
        if warnings:
            print("Configuration warnings:")
            for warning in warnings:
                print(f"  • {warning}")
            print()
        print("Configuration is valid")
        sys.exit(0)

    setup_logging(
        level=settings.log_level,
        debug=settings.debug,
        log_format=settings.log_format,
        log_to_file=settings.log_to_file,
        log_file_path=settings.log_file_path if settings.log_to_file else None,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
    )

    dir_errors = settings.ensure_data_dirs()
    if dir_errors:
        for error in dir_errors:
            print(f"ERROR: {error}")
        sys.exit(1)

    for warning in settings.check():
        logging.warning(warning)

    from tgrelay.web.app import create_app

    try:
        uvicorn.run(
            create_app(settings=settings),
            host=settings.host,
            port=settings.port,
            log_level="debug" if settings.debug else "info",
        )
    except KeyboardInterrupt:
        print("\nShutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
