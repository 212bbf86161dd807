"""CLI entrypoint to serve the scheduling API."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import uvicorn

from viewingdesk.app.main import create_app
from viewingdesk.core.settings import SchedulerSettings
from viewingdesk.utils.logging import configure_logging, get_logger


logger = get_logger("SchedulerCLI")


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the viewing scheduler HTTP API.")
    parser.add_argument("--config", type=Path, default=Path("config/scheduler.example.yml"), help="Path to settings YAML")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()
    configure_logging(logging.getLevelName(args.log_level))

    settings = SchedulerSettings.from_file(args.config)
    logger.info("Serving scheduler on %s:%d (store=%s)", args.host, args.port, settings.store_path)
    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
