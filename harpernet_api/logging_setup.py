from __future__ import annotations

import logging
from pathlib import Path

from .config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(settings: Settings) -> None:
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(formatter)
    handler.setLevel(level)
    root_logger.addHandler(handler)

    if settings.cloudwatch_log_group:
        setup_cloudwatch_logging(settings.cloudwatch_log_group, level)


def setup_cloudwatch_logging(log_group: str, level: int = logging.INFO) -> bool:
    """Ship log records to CloudWatch. Local logging keeps working if this fails."""
    try:
        import boto3
        import watchtower

        handler = watchtower.CloudWatchLogHandler(
            log_group_name=log_group,
            boto3_client=boto3.client("logs"),
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)
    except Exception as e:
        logging.getLogger(__name__).warning(f"CloudWatch logging unavailable: {e}")
        return False
    logging.getLogger(__name__).info(f"CloudWatch logging enabled for group {log_group}")
    return True
