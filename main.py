"""Main entry point for the uptime monitoring service."""

import argparse
import asyncio
import logging
import sys

import structlog
import uvicorn

from uptime_monitor.api import create_app
from uptime_monitor.config import load_config
from uptime_monitor.service import MonitoringService


logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Set up structlog output; stdlib loggers (uvicorn, httpx) share the level."""
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    logging.basicConfig(level=numeric, format="%(message)s", stream=sys.stdout)
    # httpx logs full request URLs, which carry bot tokens for Telegram
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    renderer = structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


async def run_once(service: MonitoringService) -> int:
    """One tick against the registry, then exit (cron-style usage)."""
    try:
        await service.seed_targets()
        summary = await service.scheduler.tick()
    finally:
        await service.stop()
    logger.info("Single run finished", **summary.to_dict())
    return 1 if summary.aborted or summary.failed else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Uptime monitoring and alerting service")
    parser.add_argument("--config", default=None, help="Path to monitoring YAML (default: $MONITORING_CONFIG)")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--once", action="store_true", help="Run a single check tick and exit")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config.log_level, config.log_format)

    service = MonitoringService.from_config(config)
    if args.once:
        return asyncio.run(run_once(service))

    app = create_app(service)
    uvicorn.run(
        app,
        host=args.host or config.api.host,
        port=args.port or config.api.port,
        log_level=config.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
