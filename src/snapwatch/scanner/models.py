"""Scan result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class ScannedFile:
    """One file of a snapshot.

    relative_path uses forward slashes and is relative to the scan root.
    """

    relative_path: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"relative_path": self.relative_path, "content": self.content}


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Complete result of one directory scan. Replaced wholesale, never merged."""

    root_directory: Path | None
    files: tuple[ScannedFile, ...] = field(default_factory=tuple)
    generated_at: datetime | None = None

    @classmethod
    def create(cls, root_directory: Path, files: list[ScannedFile]) -> Snapshot:
        return cls(
            root_directory=root_directory,
            files=tuple(files),
            generated_at=datetime.now(UTC),
        )

    @property
    def is_empty(self) -> bool:
        """True for the sentinel returned before any scan completed."""
        return self.generated_at is None

    def to_dict(self, *, include_content: bool = True) -> dict[str, Any]:
        return {
            "root_directory": str(self.root_directory) if self.root_directory else None,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "file_count": len(self.files),
            "files": [
                f.to_dict() if include_content else {"relative_path": f.relative_path}
                for f in self.files
            ],
        }


EMPTY_SNAPSHOT = Snapshot(root_directory=None)
