"""Durable storage for learned values and remembered locations.

Two kinds of collections are stored under string keys:

- *tables*: ``{(state, action): value}`` Q-tables, kept as a JSON document of
  ``{"state": int, "action": int, "value": float}`` records;
- *points*: sequences of :class:`Vec3`, kept as one ``x,y,z`` line each.

Reading a key that was never written is a normal cold start and yields an
empty collection. Malformed records are skipped one by one so a damaged file
still loads everything that can be read.
"""
from __future__ import annotations

import json
import logging
import math
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from .geometry import Vec3

logger = logging.getLogger(__name__)

QKey = Tuple[int, int]


class PersistenceService(ABC):
    """Storage backend used by the Q-table and the knowledge base."""

    @abstractmethod
    def load_table(self, key: str) -> Dict[QKey, float]:
        ...

    @abstractmethod
    def save_table(self, key: str, table: Dict[QKey, float]) -> None:
        ...

    @abstractmethod
    def load_points(self, key: str) -> List[Vec3]:
        ...

    @abstractmethod
    def save_points(self, key: str, points: Iterable[Vec3]) -> None:
        ...


class InMemoryPersistence(PersistenceService):
    """Dict-backed storage; data is lost when the process exits."""

    def __init__(self):
        self.tables: dict[str, Dict[QKey, float]] = {}
        self.points: dict[str, List[Vec3]] = {}

    def load_table(self, key: str) -> Dict[QKey, float]:
        return dict(self.tables.get(key, {}))

    def save_table(self, key: str, table: Dict[QKey, float]) -> None:
        self.tables[key] = dict(table)

    def load_points(self, key: str) -> List[Vec3]:
        return list(self.points.get(key, []))

    def save_points(self, key: str, points: Iterable[Vec3]) -> None:
        self.points[key] = list(points)


class FilePersistence(PersistenceService):
    """File-based storage in a single directory.

    Tables live in ``{base_path}/{key}.json`` and point lists in
    ``{base_path}/{key}.txt``. Every write goes to a temporary file in the
    same directory which then replaces the target, so readers never observe
    a partially written file.
    """

    def __init__(self, base_path: Path | str = "data"):
        self.base_path = Path(base_path)

    def table_path(self, key: str) -> Path:
        return self.base_path / f"{key}.json"

    def points_path(self, key: str) -> Path:
        return self.base_path / f"{key}.txt"

    # ------------------------------------------------------------------ #
    # Tables
    # ------------------------------------------------------------------ #
    def load_table(self, key: str) -> Dict[QKey, float]:
        path = self.table_path(key)
        if not path.exists():
            logger.info("No stored table at %s; starting empty.", path)
            return {}

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Unreadable table at %s (%s); starting empty.", path, exc)
            return {}

        table = parse_table_records(payload)
        logger.info("Loaded table (%d entries) from %s", len(table), path)
        return table

    def save_table(self, key: str, table: Dict[QKey, float]) -> None:
        path = self.table_path(key)
        document = {"entries": table_records(table)}
        self._atomic_write(path, json.dumps(document, indent=2))
        logger.info("Saved table (%d entries) to %s", len(table), path)

    # ------------------------------------------------------------------ #
    # Points
    # ------------------------------------------------------------------ #
    def load_points(self, key: str) -> List[Vec3]:
        path = self.points_path(key)
        if not path.exists():
            return []

        points: List[Vec3] = []
        for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                points.append(Vec3.parse(line))
            except ValueError:
                logger.debug("Skipping malformed point on line %d of %s: %r", line_no, path, line)
        return points

    def save_points(self, key: str, points: Iterable[Vec3]) -> None:
        lines = [p.format() for p in points]
        text = "\n".join(lines) + ("\n" if lines else "")
        self._atomic_write(self.points_path(key), text)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _atomic_write(self, path: Path, text: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError:
            logger.error("Failed to write %s", path, exc_info=True)
            raise


def table_records(table: Dict[QKey, float]) -> list[dict]:
    """Q-table as a list of ``{state, action, value}`` records, sorted by key."""
    return [
        {"state": state, "action": action, "value": float(value)}
        for (state, action), value in sorted(table.items())
    ]


def parse_table_records(payload) -> Dict[QKey, float]:
    """Build a Q-table from stored records.

    Accepts ``{"entries": [...]}`` or a bare list. Records that are not
    objects, miss a field or carry non-numeric values are skipped; for
    duplicate ``(state, action)`` keys the first record wins.
    """
    if isinstance(payload, dict):
        records = payload.get("entries", [])
    else:
        records = payload
    if not isinstance(records, list):
        logger.warning("Table document has no record list; starting empty.")
        return {}

    table: Dict[QKey, float] = {}
    for record in records:
        try:
            state, action, value = _parse_record(record)
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping malformed table record: %r", record)
            continue
        table.setdefault((state, action), value)
    return table


def _parse_record(record) -> tuple[int, int, float]:
    if not isinstance(record, dict):
        raise TypeError("record is not an object")
    state = record.get("state", record.get("stateKey"))
    action = record.get("action", record.get("actionKey"))
    if state is None or action is None or "value" not in record:
        raise KeyError("missing field")
    if isinstance(state, bool) or isinstance(action, bool):
        raise TypeError("boolean key")
    state_f = float(state)
    action_f = float(action)
    if not state_f.is_integer() or not action_f.is_integer():
        raise ValueError("non-integer key")
    value = float(record["value"])
    if not math.isfinite(value):
        raise ValueError("non-finite value")
    if state_f < 0 or action_f < 0:
        raise ValueError("negative key")
    return int(state_f), int(action_f), value
