"""File database: interned source files and byte-offset → position resolution."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field

from .errors import FileNameConflictError
from .source_types import SourcePosition

FileId = int


@dataclass(frozen=True)
class SourceFile:
    name: str
    content: str
    virtual: bool = False
    line_starts: tuple[int, ...] = field(init=False, repr=False)
    size: int = field(init=False, repr=False)

    def __post_init__(self):
        data = self.content.encode("utf-8")
        starts = [0] + [i + 1 for i, b in enumerate(data) if b == 0x0A]
        object.__setattr__(self, "line_starts", tuple(starts))
        object.__setattr__(self, "size", len(data))

    def position(self, offset: int) -> SourcePosition | None:
        """Resolve a byte *offset* (end-inclusive) or ``None`` when out of range."""
        if offset < 0 or offset > self.size:
            return None
        line = bisect_right(self.line_starts, offset) - 1
        return SourcePosition(line=line, col=offset - self.line_starts[line])


class FileDatabase:
    """Interns files for one compilation pass.

    Ids are dense integers in interning order.  Interning the same file twice
    returns the existing id; reusing a name for a different file is an error.
    """

    def __init__(self):
        self._files: list[SourceFile] = []
        self._ids: dict[str, FileId] = {}

    def add(self, name: str, content: str, virtual: bool = False) -> FileId:
        """Intern a file and return its id.

        Raises:
            FileNameConflictError: if *name* is already interned with other
                content or a different virtual flag.
        """
        existing = self._ids.get(name)
        if existing is not None:
            known = self._files[existing]
            if known.content != content or known.virtual != virtual:
                raise FileNameConflictError(
                    f"File name '{name}' is already used by"
                    f" {'a generated' if known.virtual else 'another'} file"
                )
            return existing
        file_id = len(self._files)
        self._files.append(SourceFile(name=name, content=content, virtual=virtual))
        self._ids[name] = file_id
        return file_id

    def lookup(self, file_id: FileId) -> SourceFile | None:
        if 0 <= file_id < len(self._files):
            return self._files[file_id]
        return None

    def file_name(self, file_id: FileId) -> str | None:
        f = self.lookup(file_id)
        return f.name if f else None

    def content(self, file_id: FileId) -> str | None:
        f = self.lookup(file_id)
        return f.content if f else None

    def is_virtual(self, file_id: FileId) -> bool:
        f = self.lookup(file_id)
        return bool(f and f.virtual)

    def position_in_file(self, file_id: FileId, offset: int) -> SourcePosition | None:
        f = self.lookup(file_id)
        if f is None:
            return None
        return f.position(offset)

    def __len__(self) -> int:
        return len(self._files)
