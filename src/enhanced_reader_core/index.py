from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from enhanced_reader_core.cfi import section_key
from enhanced_reader_core.models import Annotation


@dataclass(frozen=True)
class IndexStats:
    section_count: int
    total_annotations: int
    avg_per_section: float


class SectionIndex:
    """
    Annotations bucketed by spine section (`/6/8` in `epubcfi(/6/8!...)`).

    Derived from the store's collection and rebuilt whenever that collection
    is replaced. Identifiers without a section key are left out everywhere.
    """

    def __init__(self, annotations: Iterable[Annotation] = ()):
        self._by_section: dict[str, list[Annotation]] = {}
        self.rebuild(annotations)

    def rebuild(self, annotations: Iterable[Annotation]) -> None:
        self._by_section.clear()
        for a in annotations:
            self.add(a)

    def get_for_section(self, locator: str) -> list[Annotation]:
        key = section_key(locator)
        if not key:
            return []
        return list(self._by_section.get(key, []))

    def get_all(self) -> list[Annotation]:
        out: list[Annotation] = []
        for bucket in self._by_section.values():
            out.extend(bucket)
        return out

    def add(self, annotation: Annotation) -> None:
        key = section_key(getattr(annotation, "identifier", None))
        if not key:
            return
        self._by_section.setdefault(key, []).append(annotation)

    def remove(self, identifier: str) -> None:
        key, bucket, i = self._locate(identifier)
        if bucket is None or i is None:
            return
        del bucket[i]
        if not bucket:
            del self._by_section[key]

    def update(self, identifier: str, annotation: Annotation) -> None:
        # Silent when missing; callers must not use this to check existence.
        _, bucket, i = self._locate(identifier)
        if bucket is None or i is None:
            return
        bucket[i] = annotation

    def find_by_cfi(self, identifier: str) -> Annotation | None:
        _, bucket, i = self._locate(identifier)
        if bucket is None or i is None:
            return None
        return bucket[i]

    def sections(self) -> list[str]:
        return list(self._by_section)

    def stats(self) -> IndexStats:
        section_count = len(self._by_section)
        total = sum(len(b) for b in self._by_section.values())
        avg = total / section_count if section_count else 0.0
        return IndexStats(section_count=section_count, total_annotations=total, avg_per_section=round(avg, 1))

    def _locate(self, identifier: str) -> tuple[str, list[Annotation] | None, int | None]:
        key = section_key(identifier)
        if not key:
            return "", None, None
        bucket = self._by_section.get(key)
        if not bucket:
            return key, None, None
        for i, a in enumerate(bucket):
            if a.identifier == identifier:
                return key, bucket, i
        return key, bucket, None

    def __len__(self) -> int:
        return sum(len(b) for b in self._by_section.values())

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and self.find_by_cfi(identifier) is not None
