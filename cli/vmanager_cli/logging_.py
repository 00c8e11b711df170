from __future__ import annotations

import logging

PACKAGE_LOGGER = "vmanager_cli"
_NOISY = ("httpx", "httpcore", "asyncio")


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # httpx logs every request at INFO
    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


def enable_service_logging() -> None:
    """Let long-running hosts report connections and requests at INFO."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    if logger.getEffectiveLevel() > logging.INFO:
        logger.setLevel(logging.INFO)
