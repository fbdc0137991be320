"""Logging for the glTF packer.

Every module logs through ``get_logger(__name__)``, so all packer output
lives under the ``gltf_packer`` namespace: bufferView placement and pruned
extensions at DEBUG, written files at INFO. Library use stays silent until
the caller configures logging; the export_gltf CLI calls ``setup_logging``
with DEBUG for ``-v`` and WARNING otherwise.
"""
import logging
from typing import Optional

LOGGER_NAMESPACE = "gltf_packer"


def get_logger(name: str) -> logging.Logger:
    """Get a child logger of the gltf_packer namespace."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def setup_logging(level: Optional[int] = None) -> None:
    """Send gltf_packer records to stderr at the given level.

    Calling it again only changes the level of the existing handler.

    Args:
        level: Logging level, defaults to INFO
    """
    if level is None:
        level = logging.INFO

    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(handler)
