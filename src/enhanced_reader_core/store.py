from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from enhanced_reader_core.config import Settings
from enhanced_reader_core.models import Annotation

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    pass


class AnnotationStore(Protocol):
    def load(self, document_path: str) -> list[Annotation]: ...

    def save(self, document_path: str, annotations: Iterable[Annotation]) -> None: ...


def annotations_from_records(records: Any, *, document_path: str = "") -> list[Annotation]:
    """
    Validate persisted records one by one; bad records are skipped with a warning.
    """
    if records is None:
        return []
    if not isinstance(records, list):
        raise StoreError(f"Expected a list of annotations for {document_path!r}, got {type(records).__name__}")
    out: list[Annotation] = []
    for i, rec in enumerate(records):
        try:
            out.append(Annotation.model_validate(rec))
        except ValidationError as e:
            logger.warning(f"Skipping malformed annotation #{i} for {document_path!r}: {e.error_count()} error(s)")
    return out


class InMemoryAnnotationStore:
    def __init__(self, initial: dict[str, list[Annotation]] | None = None):
        self._data: dict[str, list[Annotation]] = {k: list(v) for k, v in (initial or {}).items()}

    def load(self, document_path: str) -> list[Annotation]:
        return list(self._data.get(document_path, []))

    def save(self, document_path: str, annotations: Iterable[Annotation]) -> None:
        self._data[document_path] = list(annotations)


class JsonFileAnnotationStore:
    """
    All documents' annotations in one UTF-8 JSON file: `{document_path: [record, ...]}`.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    @classmethod
    def from_settings(cls, settings: Settings) -> JsonFileAnnotationStore:
        return cls(settings.store_path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Cannot read annotation store {self._path}: {e}") from e
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt annotation store {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Annotation store {self._path} must hold a JSON object")
        return data

    def load(self, document_path: str) -> list[Annotation]:
        return annotations_from_records(self._read_all().get(document_path), document_path=document_path)

    def save(self, document_path: str, annotations: Iterable[Annotation]) -> None:
        data = self._read_all()
        data[document_path] = [a.to_record() for a in annotations]
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self._path)
