from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from domain.models import Category, CorrectionEntry

logger = logging.getLogger(__name__)


class CorrectionStoreError(RuntimeError):
    pass


class CorrectionStore(ABC):
    """Persistence contract for the learned categorization corrections list."""

    @abstractmethod
    def load(self) -> list[CorrectionEntry]:
        raise NotImplementedError

    @abstractmethod
    def save(self, entries: Iterable[CorrectionEntry]) -> None:
        raise NotImplementedError


class InMemoryCorrectionStore(CorrectionStore):
    def __init__(self, entries: Iterable[CorrectionEntry] | None = None) -> None:
        self._entries: list[CorrectionEntry] = list(entries or [])

    def load(self) -> list[CorrectionEntry]:
        return list(self._entries)

    def save(self, entries: Iterable[CorrectionEntry]) -> None:
        self._entries = list(entries)


def serialize_entry(entry: CorrectionEntry) -> dict[str, Any]:
    return {
        "tokens": list(entry.tokens),
        "category": entry.category.value,
        "updated_at": entry.updated_at.isoformat(),
    }


def deserialize_entry(raw: Any) -> CorrectionEntry | None:
    if not isinstance(raw, dict):
        return None
    try:
        tokens = tuple(str(token) for token in raw["tokens"])
        category = Category(str(raw["category"]))
        updated_at = datetime.fromisoformat(str(raw["updated_at"]))
    except (KeyError, TypeError, ValueError):
        return None
    if not tokens:
        return None
    return CorrectionEntry(tokens=tokens, category=category, updated_at=updated_at)


class JsonFileCorrectionStore(CorrectionStore):
    """Keeps the corrections list as a single JSON array on disk."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[CorrectionEntry]:
        if not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CorrectionStoreError(f"Unable to read corrections from {self._path}: {exc}") from exc

        if not isinstance(payload, list):
            raise CorrectionStoreError(f"Expected a JSON list in {self._path}, got {type(payload).__name__}")

        entries: list[CorrectionEntry] = []
        for raw in payload:
            entry = deserialize_entry(raw)
            if entry is None:
                logger.warning("Skipping malformed correction entry path=%s entry=%r", self._path, raw)
                continue
            entries.append(entry)
        logger.info("Loaded corrections path=%s count=%d", self._path, len(entries))
        return entries

    def save(self, entries: Iterable[CorrectionEntry]) -> None:
        payload = [serialize_entry(entry) for entry in entries]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise CorrectionStoreError(f"Unable to write corrections to {self._path}: {exc}") from exc
        logger.debug("Saved corrections path=%s count=%d", self._path, len(payload))
