"""File storage for downloaded content units."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from pagepal.core import ContentKind, ContentUnit, Label
from pagepal.core.book import IMAGE_EXTENSIONS

logger = logging.getLogger(__name__)


class ContentStorage:
    """Writes and reads content units under a library root directory.

    Layout: ``<root>/<title>/<chapter:04>/<sequence:04>.<ext>``.
    """

    def __init__(self, root: Union[str, Path] = "library") -> None:
        self.root = Path(root)

    def path_for(self, title: Union[Label, str], chapter: int, sequence: int) -> Path:
        """Location of unit ``sequence`` of ``chapter`` in book ``title`` (no suffix)."""
        name = str(title).strip() or "unsorted"
        return self.root / _safe_name(name) / f"{chapter:04}" / f"{sequence:04}"

    def save(self, unit: ContentUnit, data: Optional[bytes] = None) -> ContentUnit:
        """Write ``unit`` to disk and return it with its final location.

        Images are written from ``data`` with a ``.jpg`` suffix, text units
        write their body. Other and empty units are returned untouched.

        Raises:
            RuntimeError: If an image has no bytes or the write fails.
        """
        if unit.kind is ContentKind.IMAGE:
            if data is None:
                raise RuntimeError(f"No image data to save for {unit.location}")
            target = Path(unit.location).with_suffix(".jpg")
            self._write(target, data)
            return unit.with_location(target)
        if unit.kind is ContentKind.TEXT:
            target = Path(unit.location)
            if not target.suffix:
                target = target.with_suffix(".txt")
            self._write(target, unit.body.encode("utf-8"))
            return unit.with_location(target)
        logger.debug("Nothing to write for %s unit", unit.kind.value)
        return unit

    async def save_async(self, unit: ContentUnit, data: Optional[bytes] = None) -> ContentUnit:
        return await asyncio.to_thread(self.save, unit, data)

    def load(self, path: Union[str, Path]) -> ContentUnit:
        """Read a unit back; the kind is inferred from the file extension.

        Raises:
            RuntimeError: If the file does not exist.
        """
        path = Path(path)
        if not path.is_file():
            raise RuntimeError(f"Content file not found: {path}")
        if path.suffix.lower() in IMAGE_EXTENSIONS:
            return ContentUnit.image(path)
        return ContentUnit.text(path, path.read_text(encoding="utf-8", errors="replace"))

    @staticmethod
    def _write(target: Path, payload: bytes) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as e:
            raise RuntimeError(f"Failed to write {target}: {e}") from e
        logger.debug("Wrote %d bytes to %s", len(payload), target)


def _safe_name(name: str) -> str:
    return "".join("_" if c in '/\\:*?"<>|' else c for c in name)
