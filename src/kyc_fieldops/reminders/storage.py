"""Tabular and key-value storage used by the reminder batch.

The batch only depends on the `Workbook`/`Sheet` and `PropertyStore`
protocols. The CSV and JSON-file implementations here back the CLI; any
spreadsheet service can be plugged in by implementing the same methods.
"""

import csv
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)

DAILY_EVENT_MAP_PROPERTY = "DAILY_EVENT_MAP_JSON"


class Sheet(Protocol):
    """A grid of cells addressed by 1-based row and column."""

    name: str

    @property
    def url(self) -> str: ...

    def get_values(self) -> list[list[Any]]: ...

    def set_value(self, row: int, column: int, value: Any) -> None: ...

    def set_column_values(self, start_row: int, column: int, values: Sequence[Any]) -> None: ...


class Workbook(Protocol):
    def get_sheet(self, name: str) -> Sheet | None: ...


class PropertyStore(Protocol):
    """String properties persisted alongside the workbook."""

    def get_property(self, key: str) -> str | None: ...

    def set_property(self, key: str, value: str) -> None: ...


# === CSV workbook ===


class CsvSheet:
    """A sheet stored as one CSV file."""

    def __init__(self, path: Path, name: str | None = None):
        self.path = path
        self.name = name or path.stem

    @property
    def url(self) -> str:
        return self.path.resolve().as_uri()

    def get_values(self) -> list[list[Any]]:
        """Return every row, padded to a rectangle of strings."""
        with self.path.open("r", newline="", encoding="utf-8-sig") as f:
            rows = [list(row) for row in csv.reader(f)]
        width = max((len(row) for row in rows), default=0)
        return [row + [""] * (width - len(row)) for row in rows]

    def _save(self, rows: list[list[Any]]) -> None:
        with self.path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, lineterminator="\n")
            writer.writerows(rows)

    @staticmethod
    def _grow(rows: list[list[Any]], n_rows: int, n_cols: int) -> None:
        while len(rows) < n_rows:
            rows.append([])
        width = max(n_cols, max((len(row) for row in rows), default=0))
        for row in rows:
            row.extend([""] * (width - len(row)))

    def set_value(self, row: int, column: int, value: Any) -> None:
        if row < 1 or column < 1:
            raise ValueError("row and column are 1-based")
        rows = self.get_values()
        self._grow(rows, row, column)
        rows[row - 1][column - 1] = "" if value is None else value
        self._save(rows)

    def set_column_values(self, start_row: int, column: int, values: Sequence[Any]) -> None:
        if start_row < 1 or column < 1:
            raise ValueError("row and column are 1-based")
        rows = self.get_values()
        self._grow(rows, start_row + len(values) - 1, column)
        for offset, value in enumerate(values):
            rows[start_row - 1 + offset][column - 1] = "" if value is None else value
        self._save(rows)


class CsvWorkbook:
    """A directory of CSV files, one per sheet (`<sheet name>.csv`)."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def get_sheet(self, name: str) -> CsvSheet | None:
        path = self.directory / f"{name}.csv"
        if not path.is_file():
            return None
        return CsvSheet(path, name=name)


# === Property store ===


class JsonFilePropertyStore:
    """Properties kept as a flat JSON object in a file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("property_file_unreadable", path=str(self.path))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def get_property(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_property(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )


# === Daily reminder record ===


def load_daily_event_map(
    store: PropertyStore, key: str = DAILY_EVENT_MAP_PROPERTY
) -> dict[str, str]:
    """Load the ISO date -> event id mapping.

    Missing, corrupt or non-object JSON yields an empty mapping.
    """
    raw = store.get_property(key)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("daily_event_map_corrupt", key=key)
        return {}
    if not isinstance(data, dict):
        logger.warning("daily_event_map_not_object", key=key)
        return {}
    return {str(day): str(event_id) for day, event_id in data.items() if event_id}


def save_daily_event_map(
    store: PropertyStore,
    mapping: dict[str, str],
    key: str = DAILY_EVENT_MAP_PROPERTY,
) -> None:
    """Persist the ISO date -> event id mapping as one JSON string property."""
    store.set_property(key, json.dumps(mapping, sort_keys=True))
