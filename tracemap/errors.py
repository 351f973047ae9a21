"""Exception hierarchy for the compilation and correlation pipeline."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class TracemapError(Exception):
    """Base class for every failure raised by this package."""


class SourceSyntaxError(TracemapError):
    """The front end found syntax errors in the source text."""


class IRParseError(TracemapError):
    """IR text could not be parsed back into statements."""

    def __init__(self, message: str, fragment: str, line_number: int):
        super().__init__(f"{message} (line {line_number}: {fragment!r})")
        self.fragment = fragment
        self.line_number = line_number


class MetadataError(TracemapError):
    """Frame or resource metadata could not be computed."""


class CodegenError(TracemapError):
    """The final code generator could not lower a statement."""


class CodeSizeLimitError(CodegenError):
    """Generated code exceeds a configured size limit."""


class EntryPointError(TracemapError):
    """Contract entry points are missing or inconsistent."""


class FileNameConflictError(TracemapError):
    """Two different files were interned under the same name."""


class CompilationError(TracemapError):
    """A pipeline stage failed.

    ``stage`` names the stage and ``cause`` is the original error.
    """

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"[{stage}] {cause}")
        self.stage = stage
        self.cause = cause


@contextmanager
def stage(name: str) -> Iterator[None]:
    """Wrap failures raised inside the block with the stage *name*."""
    try:
        yield
    except CompilationError:
        raise
    except (TracemapError, ValueError) as exc:
        logger.info("Stage '%s' failed: %s", name, exc)
        raise CompilationError(name, exc) from exc
