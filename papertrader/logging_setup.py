from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pythonjsonlogger import jsonlogger

from papertrader.config import LogConfig

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _make_formatter(cfg: LogConfig) -> logging.Formatter:
    if cfg.json_logs:
        return jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "ts", "levelname": "level", "name": "logger"},
        )
    return logging.Formatter(_TEXT_FORMAT)


def setup_logging(cfg: LogConfig) -> None:
    level = getattr(logging, cfg.level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # CLI commands call this once per invocation; drop handlers from earlier runs.
    for h in list(root.handlers):
        root.removeHandler(h)

    formatter = _make_formatter(cfg)

    Path(cfg.file).parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(cfg.file, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if cfg.console:
        stream = logging.StreamHandler()
        stream.setLevel(max(level, logging.WARNING))
        stream.setFormatter(formatter)
        root.addHandler(stream)
