"""Label catalog: the ordered class names aligned with model output indices."""

from __future__ import annotations

import logging
from pathlib import Path

from breedlens.errors import ResourceLoadError

logger = logging.getLogger(__name__)

LabelSet = tuple[str, ...]


class LabelCatalog:
    """Loads a newline-delimited label file once at startup."""

    @staticmethod
    def parse(text: str) -> LabelSet:
        """Split label text into lines, keeping order.

        Only newline characters separate labels; other Unicode line breaks stay
        inside a label so indices stay aligned with the model output.

        Trailing blank lines are dropped so a final newline does not add an
        empty label; blank lines in the middle are kept to preserve alignment.
        """
        lines = [line.rstrip("\r").strip() for line in text.split("\n")]
        while lines and not lines[-1]:
            lines.pop()
        return tuple(lines)

    @classmethod
    def load(cls, source: str | Path) -> LabelSet:
        """Read the label file at ``source``.

        Raises:
            ResourceLoadError: If the file is missing, unreadable, or holds no labels.
        """
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ResourceLoadError(f"Cannot read labels from {path}: {exc}") from exc

        labels = cls.parse(text)
        if not labels:
            raise ResourceLoadError(f"Label file {path} is empty")

        logger.info("Loaded %d labels from %s", len(labels), path)
        return labels
