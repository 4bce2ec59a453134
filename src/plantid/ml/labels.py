"""Label map: sparse ``id,label`` CSV rows turned into a dense index lookup."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from plantid.ml.errors import LabelsNotFoundError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "Unknown"

# Largest accepted class id; the dense table is sized by the highest id.
MAX_LABEL_ID = 1_048_575

_ID_PATTERN = re.compile(r"\+?[0-9]+")


class LabelMap:
    """Immutable lookup from class index to display text.

    Indices without a source row are holes (stored as ``""``) and resolve to
    ``UNKNOWN_LABEL``, as do negative and out-of-range indices.
    """

    __slots__ = ("_labels",)

    def __init__(self, labels: tuple[str, ...] = ()) -> None:
        self._labels = labels

    @classmethod
    def parse(cls, text: str) -> LabelMap:
        """Parse label text with a header line followed by ``id,label`` rows.

        Malformed rows (no comma, non-numeric id, id above ``MAX_LABEL_ID``)
        and blank lines are dropped. When an id repeats, the later row wins.
        """
        rows: dict[int, str] = {}
        dropped = 0

        for line_index, line in enumerate(text.splitlines()):
            if line_index == 0:
                continue
            trimmed = line.strip()
            if not trimmed:
                continue

            raw_id, sep, name = trimmed.partition(",")
            if not sep or _ID_PATTERN.fullmatch(raw_id) is None:
                dropped += 1
                continue
            label_id = int(raw_id)
            if label_id > MAX_LABEL_ID:
                dropped += 1
                continue
            rows[label_id] = name

        if dropped:
            logger.warning("Dropped %d malformed label row(s)", dropped)

        if not rows:
            return cls()

        labels = [""] * (max(rows) + 1)
        for label_id, name in rows.items():
            labels[label_id] = name
        return cls(tuple(labels))

    @classmethod
    def load(cls, path: Path) -> LabelMap:
        """Read and parse a UTF-8 label file."""
        try:
            text = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            raise LabelsNotFoundError(f"Labels file not readable: {path}") from exc

        label_map = cls.parse(text)
        logger.info("Loaded %d labels from %s", len(label_map), path)
        return label_map

    def label_for(self, label_id: int) -> str:
        if label_id < 0 or label_id >= len(self._labels):
            return UNKNOWN_LABEL
        return self._labels[label_id] or UNKNOWN_LABEL

    def __len__(self) -> int:
        return len(self._labels)

    def __repr__(self) -> str:
        return f"LabelMap(len={len(self._labels)})"
