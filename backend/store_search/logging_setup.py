"""Logging configuration for the CLI and any embedding service."""

import logging
import re
from typing import Optional

from .settings import Settings, settings as default_settings


# Custom formatter to strip ANSI color codes from file logs
class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)


def configure_logging(config: Optional[Settings] = None, log_to_file: bool = True):
    """
    Install console (colored) and file (color-stripped) handlers.

    Args:
        config: Settings to read level, format and log path from
        log_to_file: Whether to also write to config.log_file
    """
    config = config or default_settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(config.log_format))
    handlers = [console_handler]

    if log_to_file:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file, encoding='utf-8')
        file_handler.setFormatter(ColorStripFormatter(config.log_format))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    # httpx logs every request at INFO
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
