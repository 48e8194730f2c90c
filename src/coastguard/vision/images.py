"""Loads a parcel's before/after imagery from the uploads directory."""

from __future__ import annotations

from pathlib import Path

from coastguard.core.errors import CollaboratorError
from coastguard.records.models import ParcelRecord


class ImageLoader:
    """Resolves image references to bytes.

    Relative references are resolved against *uploads_dir*.
    """

    def __init__(self, uploads_dir: str | Path) -> None:
        self._uploads_dir = Path(uploads_dir)

    def resolve(self, reference: str) -> Path:
        path = Path(reference)
        return path if path.is_absolute() else self._uploads_dir / path

    def read(self, reference: str | None) -> bytes:
        if not reference:
            raise CollaboratorError("Image reference is missing")
        path = self.resolve(reference)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise CollaboratorError(f"Failed to read image {path}: {exc}") from exc

    def load_pair(self, parcel: ParcelRecord) -> tuple[bytes, bytes]:
        """Return ``(before, after)`` image bytes for *parcel*."""
        return self.read(parcel.before_img_url), self.read(parcel.after_img_url)
