"""
Uploaded file model.

A browser upload is read once into memory and kept as an immutable value,
so the preprocessor can hand back either the very same object or a
re-encoded replacement.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UploadedFile:
    name:          str
    content_type:  str
    data:          bytes = field(repr=False)
    last_modified: datetime = field(default_factory=_now)

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_storage(cls, storage) -> "UploadedFile":
        """Read a werkzeug FileStorage (request.files[...]) into memory."""
        return cls(
            name=storage.filename or "",
            content_type=storage.mimetype or "application/octet-stream",
            data=storage.read(),
        )
