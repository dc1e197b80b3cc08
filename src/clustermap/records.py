"""Record collection loading and indexing."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml

from .models import Record


def load_records(path: Path) -> list[Record]:
    """Load and validate one record collection snapshot."""
    if not path.exists():
        raise FileNotFoundError(f"Records file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"Expected list in {path}")

    records: list[Record] = []
    seen_ids: set[int] = set()
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Expected mapping at index {idx} in {path}")
        try:
            record = Record.from_mapping(item)
        except ValueError as exc:
            raise ValueError(f"Invalid record at index {idx} in {path}: {exc}") from exc
        if record.id in seen_ids:
            raise ValueError(f"Duplicate record id {record.id} in {path}")
        seen_ids.add(record.id)
        records.append(record)
    return records


def record_index_by_id(records: Iterable[Record]) -> dict[int, Record]:
    return {record.id: record for record in records}
