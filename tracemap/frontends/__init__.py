"""Deterministic tree-sitter frontends for all supported languages."""

from __future__ import annotations

import importlib

from ._base import BaseFrontend
from .python import PythonFrontend

_FRONTEND_CLASSES: dict[str, str] = {
    "python": "python.PythonFrontend",
}


def get_deterministic_frontend(language: str) -> BaseFrontend:
    """Instantiate the deterministic frontend for *language*.

    Raises ``ValueError`` if *language* has no registered frontend.
    """
    target = _FRONTEND_CLASSES.get(language)
    if target is None:
        raise ValueError(
            f"Unsupported language for deterministic frontend: {language}"
        )
    module_name, class_name = target.split(".")
    mod = importlib.import_module(f".{module_name}", package=__package__)
    cls = getattr(mod, class_name)
    return cls()


SUPPORTED_DETERMINISTIC_LANGUAGES: tuple[str, ...] = tuple(_FRONTEND_CLASSES.keys())

__all__ = [
    "BaseFrontend",
    "PythonFrontend",
    "get_deterministic_frontend",
    "SUPPORTED_DETERMINISTIC_LANGUAGES",
]
