"""
Source File Data Class.

A SourceFile is the immutable image blob submitted to the pipeline together
with the metadata used to identify it (name, byte size, MIME type,
last-modified time) and, once known, its durable storage path and preview
reference.

Author: ML Engineering Team
"""

import mimetypes
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Union


@dataclass(frozen=True)
class SourceFile:
    """
    Immutable binary blob plus metadata.

    Attributes:
        data: Raw file bytes
        name: Original filename
        size: Size in bytes
        mime_type: MIME type reported for the file (e.g. "image/jpeg")
        last_modified: Last-modified time in milliseconds since the epoch
        storage_path: Durable storage location, if the file was uploaded
        preview_url: Locally dereferenceable preview reference

    Example:
        >>> source = SourceFile.from_path("receipts/scan_01.jpg")
        >>> source.is_image
        True
    """
    data: bytes = field(repr=False)
    name: str
    size: int
    mime_type: str
    last_modified: int = 0
    storage_path: Optional[str] = None
    preview_url: Optional[str] = None

    @property
    def is_image(self) -> bool:
        """Whether the MIME type is an image type."""
        return bool(self.mime_type) and self.mime_type.lower().startswith("image/")

    def with_preview(self, preview_url: str) -> 'SourceFile':
        """Return a copy carrying the given preview reference."""
        return replace(self, preview_url=preview_url)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        name: str,
        mime_type: Optional[str] = None,
        last_modified: int = 0,
        storage_path: Optional[str] = None
    ) -> 'SourceFile':
        """
        Build a SourceFile from in-memory bytes.

        The MIME type is guessed from the filename when not given.
        """
        if mime_type is None:
            mime_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        return cls(
            data=data,
            name=name,
            size=len(data),
            mime_type=mime_type,
            last_modified=last_modified,
            storage_path=storage_path
        )

    @classmethod
    def from_path(cls, filepath: Union[str, Path]) -> 'SourceFile':
        """
        Load a SourceFile from disk.

        Args:
            filepath: Path to the file.

        Returns:
            SourceFile with the file's bytes and stat metadata.
        """
        path = Path(filepath)
        stat = path.stat()
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(
            data=path.read_bytes(),
            name=path.name,
            size=stat.st_size,
            mime_type=mime_type,
            last_modified=int(stat.st_mtime * 1000)
        )
