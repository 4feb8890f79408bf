"""Loader for the confederate roster YAML."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

DEFAULT_ROSTER_PATH = Path(__file__).resolve().parent / "roster.yaml"


@dataclass(frozen=True)
class Confederate:
    """A trained participant executing one pre-assigned schedule."""

    confederate_id: int
    country: str


def _parse_count(value: Any, idx: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"countries[{idx}] count must be an integer, got {value!r}")
    if value < 1:
        raise ValueError(f"countries[{idx}] count must be positive, got {value}")
    return value


def parse_roster(data: Any, *, source: str = "roster") -> tuple[Confederate, ...]:
    """Build the roster from parsed YAML.

    Accepts either a mapping with a ``countries`` list (and optional
    ``expected_size``) or a bare list of ``{country, count}`` entries.
    """
    expected_size: int | None = None
    if isinstance(data, dict):
        items = data.get("countries")
        raw_expected = data.get("expected_size")
        if raw_expected is not None:
            if isinstance(raw_expected, bool) or not isinstance(raw_expected, int):
                raise ValueError(f"{source}: expected_size must be an integer")
            expected_size = raw_expected
    elif isinstance(data, list):
        items = data
    else:
        raise ValueError(f"{source}: roster must be a list or mapping with 'countries'")

    if not isinstance(items, list) or not items:
        raise ValueError(f"{source}: countries must be a non-empty list")

    confederates: list[Confederate] = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"{source}: countries[{idx}] must be a mapping")
        country = item.get("country")
        if not country or not isinstance(country, str):
            raise ValueError(f"{source}: countries[{idx}] missing country")
        count = _parse_count(item.get("count", 1), idx)
        for _ in range(count):
            confederates.append(
                Confederate(confederate_id=len(confederates) + 1, country=country.strip())
            )

    if expected_size is not None and len(confederates) != expected_size:
        raise ValueError(
            f"{source}: roster has {len(confederates)} confederates, "
            f"expected {expected_size}"
        )

    return tuple(confederates)


def load_roster(path: str | Path | None = None) -> tuple[Confederate, ...]:
    """Load the confederate roster.

    Args:
        path: Optional roster YAML. Defaults to the packaged study roster.

    Returns:
        Confederates ordered by id.
    """
    if path is None:
        return _load_default_roster()
    roster_path = Path(path)
    if not roster_path.exists():
        raise FileNotFoundError(f"Roster file not found: {roster_path}")
    data = yaml.safe_load(roster_path.read_text(encoding="utf-8"))
    return parse_roster(data, source=roster_path.name)


@lru_cache
def _load_default_roster() -> tuple[Confederate, ...]:
    data = yaml.safe_load(DEFAULT_ROSTER_PATH.read_text(encoding="utf-8"))
    return parse_roster(data, source=DEFAULT_ROSTER_PATH.name)
