"""Root logger configuration for the CLI"""

import logging
import os
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "info", debug: bool = False, log_file: Optional[str] = None) -> None:
    """Configure the root logger

    Args:
        level: Console log level name (ignored when debug is set)
        debug: Log everything at DEBUG and mirror it to log_file
        log_file: Debug log path, appended to (default: vault_debug.log)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else getattr(logging, str(level).upper(), logging.INFO))

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if debug:
        log_path = os.path.abspath(log_file or "vault_debug.log")
        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        root_logger.debug(f"Debug logging to {log_path}")

    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
