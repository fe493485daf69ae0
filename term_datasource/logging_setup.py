"""Logging for the term datasource tools, driven by the ``logging`` config section."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Dict

from rich.console import Console
from rich.logging import RichHandler

from .config import config_section, resolve_path

DEFAULT_LOG_PATH = "logs/term_datasource.log"

# The REST store's HTTP stack logs every connection at DEBUG.
DEFAULT_QUIET_LOGGERS = ("urllib3",)


def configure_logging(config: Dict[str, Any], *, base_dir: Path | None = None) -> None:
    """Install the console and file handlers described by the configuration.

    Console output goes to stderr so the tools can print option lists and
    save results on stdout. Loggers listed under ``quiet_loggers`` only
    pass warnings and errors.
    """
    logging.captureWarnings(True)
    logging.getLogger().handlers.clear()
    logging.getLogger().setLevel(logging.DEBUG)

    logging_config = config_section(config, "logging")
    console_cfg = config_section(logging_config, "console")
    file_cfg = config_section(logging_config, "file")

    if console_cfg.get("enabled", True):
        level = console_cfg.get("level", "INFO")
        if console_cfg.get("rich_format", False):
            handler = RichHandler(level=level, console=Console(stderr=True), rich_tracebacks=True)
            formatter = logging.Formatter("%(message)s")
        else:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(level)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        handler.setFormatter(formatter)
        logging.getLogger().addHandler(handler)

    if file_cfg.get("enabled", False):
        file_path = resolve_path(file_cfg.get("path", DEFAULT_LOG_PATH), base=base_dir)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(file_path, mode="a", encoding="utf-8")
        handler.setLevel(file_cfg.get("level", "DEBUG"))
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logging.getLogger().addHandler(handler)

    for name in logging_config.get("quiet_loggers", DEFAULT_QUIET_LOGGERS) or ():
        logging.getLogger(name).setLevel(logging.WARNING)
