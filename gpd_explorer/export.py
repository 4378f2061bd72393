"""CSV export of a downloaded dataset."""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import TextIO, Union

from .options import DATA_COLUMNS, Dataset

logger = logging.getLogger(__name__)


def _write_rows(handle: TextIO, dataset: Dataset) -> None:
    w = csv.DictWriter(handle, fieldnames=list(DATA_COLUMNS), lineterminator="\n")
    w.writeheader()
    for point in dataset:
        w.writerow(point.as_dict())


def dataset_to_csv(dataset: Dataset) -> str:
    """Return ``dataset`` as CSV text with an ``x,u,d,xu,xd`` header."""
    buf = io.StringIO()
    _write_rows(buf, dataset)
    return buf.getvalue()


class CsvExporter:
    """Write downloaded datasets into ``directory``."""

    def __init__(self, directory: Union[str, Path] = ".") -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def export(self, dataset: Dataset, filename: str) -> Path:
        name = Path(filename).name
        if not name:
            raise ValueError(f"Invalid export filename {filename!r}")
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._directory / name
        with path.open("w", newline="", encoding="utf-8") as f:
            _write_rows(f, dataset)
        logger.info("exported %d points to %s", len(dataset), path)
        return path
