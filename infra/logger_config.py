from __future__ import annotations

import logging
from typing import Optional

LOGGER_NAME = "pacing"


def setup_logger(name: str = LOGGER_NAME,
                 log_file: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')

        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def get_logger(suffix: str) -> logging.Logger:
    # filhos herdam os handlers de "pacing"
    return logging.getLogger(f"{LOGGER_NAME}.{suffix}")
