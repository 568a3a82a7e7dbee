"""Resolve the configured transport backend."""

import importlib
from typing import Optional

from loguru import logger

from .base import TransportSession


def load_session_class(backend: Optional[str]) -> Optional[type[TransportSession]]:
    """
    Import a TransportSession subclass from a "package.module:ClassName" path.

    Returns None when no backend is configured.

    Raises:
        ImportError: module or attribute cannot be found
        TypeError: the attribute is not a TransportSession subclass
    """
    if not backend:
        logger.warning("TRANSPORT_BACKEND not set; gateway will run without a connection")
        return None

    module_name, _, class_name = backend.partition(":")
    module = importlib.import_module(module_name)
    try:
        session_cls = getattr(module, class_name)
    except AttributeError as e:
        raise ImportError(f"{module_name!r} has no attribute {class_name!r}") from e

    if not (isinstance(session_cls, type) and issubclass(session_cls, TransportSession)):
        raise TypeError(f"{backend!r} is not a TransportSession subclass")

    logger.info(f"Transport backend: {backend}")
    return session_cls
