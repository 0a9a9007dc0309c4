from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from enhanced_reader_core import cfi
from enhanced_reader_core.config import Settings
from enhanced_reader_core.debounce import Debouncer, Scheduler
from enhanced_reader_core.index import SectionIndex
from enhanced_reader_core.models import Annotation, utc_now_iso
from enhanced_reader_core.navigation import Navigation, resolve_section_label
from enhanced_reader_core.rendering import (
    LOCATION_CHANGED,
    SELECTED,
    Contents,
    Disposer,
    Rendition,
    location_identifier,
)
from enhanced_reader_core.store import AnnotationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionState:
    identifier: str
    text: str
    section_label: str | None = None
    existing_identifier: str | None = None

    @property
    def is_existing(self) -> bool:
        return self.existing_identifier is not None


class HighlightController:
    """
    Bridges rendering-engine events to the comparator and the section index.

    The controller is the only writer of the index: every add/remove/edit goes
    to the store first and then to the index, so both stay in step.

    Without an explicit `scheduler`, debounced restoration runs on the asyncio
    loop, so `attach()` must then be called while that loop is running.
    """

    def __init__(
        self,
        *,
        store: AnnotationStore,
        document_path: str,
        rendition: Rendition,
        navigation: Navigation | None = None,
        settings: Settings | None = None,
        scheduler: Scheduler | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self._store = store
        self._document_path = document_path
        self._rendition = rendition
        self._navigation = navigation
        self._settings = settings or Settings()
        self._sleep = sleep
        self._scheduler = scheduler

        self.index = SectionIndex()
        self.selection: SelectionState | None = None
        self._annotations: list[Annotation] = []
        self._disposers: list[Disposer] = []
        self._restore_debounced = Debouncer(
            self.restore_section, self._settings.restore_debounce_s, scheduler=scheduler
        )

    @property
    def annotations(self) -> list[Annotation]:
        return list(self._annotations)

    # ---------- lifecycle ----------

    def load(self) -> None:
        try:
            loaded = self._store.load(self._document_path)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to load highlights for {self._document_path}: {e}")
            loaded = []
        self._annotations = list(loaded)
        self.index.rebuild(self._annotations)
        logger.debug(
            f"Indexed {len(self.index)} of {len(self._annotations)} highlights "
            f"across {self.index.stats().section_count} sections"
        )

    def attach(self) -> None:
        if self._scheduler is None:
            try:
                asyncio.get_running_loop()
            except RuntimeError as e:
                raise RuntimeError("attach() needs a running event loop or an explicit scheduler") from e
        self.load()
        self._disposers.append(self._rendition.on(SELECTED, self.handle_selection))
        self._disposers.append(self._rendition.on(LOCATION_CHANGED, self.handle_location_change))

    async def start(self) -> int:
        self.attach()
        return await self.restore_all()

    def detach(self) -> None:
        self._restore_debounced.cancel()
        while self._disposers:
            dispose = self._disposers.pop()
            try:
                dispose()
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Failed to unsubscribe from rendition: {e}")

    # ---------- events ----------

    def handle_selection(self, identifier: str, contents: Contents) -> SelectionState | None:
        try:
            text = (contents.selected_text() or "").strip()
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Could not read selected text: {e}")
            text = ""
        logger.debug(f"Selection event - text: {text[:50]!r}, cfi: {identifier}")

        matches = cfi.find_overlapping(identifier, self._annotations)
        if matches:
            existing = matches[0]
            logger.debug(f"Found existing highlight: {existing.identifier}")
            self.selection = SelectionState(
                identifier=existing.identifier,
                text=existing.content or text,
                section_label=existing.section_label,
                existing_identifier=existing.identifier,
            )
        elif text:
            href = getattr(contents, "section_href", None)
            self.selection = SelectionState(
                identifier=identifier,
                text=text,
                section_label=resolve_section_label(self._navigation, href),
            )
        return self.selection

    def handle_location_change(self, location: object) -> None:
        locator = location_identifier(location)
        if locator:
            self._restore_debounced(locator)

    def clear_selection(self) -> None:
        self.selection = None

    # ---------- restoration ----------

    def _mark(self, annotation: Annotation) -> None:
        self._rendition.mark(annotation.identifier, annotation)

    def restore_section(self, locator: str) -> int:
        visible = self.index.get_for_section(locator)
        logger.debug(f"Restoring {len(visible)} highlights for current section")
        marked = 0
        for a in visible:
            if not cfi.is_valid(a.identifier):
                continue
            try:
                self._mark(a)
                marked += 1
            except Exception as e:  # noqa: BLE001
                # Expected for ranges that are not laid out right now.
                logger.debug(f"Skipped highlight {a.identifier}: {e}")
        return marked

    async def restore_all(self) -> int:
        marked = 0
        retry: list[Annotation] = []
        for a in self.index.get_all():
            if not cfi.is_valid(a.identifier):
                logger.warning(f"Invalid CFI format: {a.identifier}")
                continue
            try:
                self._mark(a)
                marked += 1
                logger.debug(f"Restored highlight: {a.identifier}")
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Failed to restore highlight for CFI: {a.identifier}: {e}")
                retry.append(a)

        if retry:
            await self._sleep(self._settings.restore_retry_delay_s)
            for a in retry:
                try:
                    self._mark(a)
                    marked += 1
                    logger.debug(f"Retry successful for CFI: {a.identifier}")
                except Exception as e:  # noqa: BLE001
                    logger.warning(f"Retry failed for CFI: {a.identifier}: {e}")
        return marked

    def flush_pending_restore(self) -> None:
        self._restore_debounced.flush()

    # ---------- mutations ----------

    def _find(self, identifier: str) -> int | None:
        for i, a in enumerate(self._annotations):
            if a.identifier == identifier:
                return i
        return None

    def _persist(self, annotations: list[Annotation]) -> None:
        self._store.save(self._document_path, annotations)
        self._annotations = annotations

    def save_highlight(
        self,
        identifier: str,
        content: str,
        *,
        section_label: str | None = None,
        created_at: str | None = None,
    ) -> Annotation:
        if not cfi.is_valid(identifier):
            raise ValueError(f"Not a valid CFI: {identifier!r}")

        idx = self._find(identifier)
        if idx is not None:
            return self._annotations[idx]

        annotation = Annotation(
            identifier=identifier,
            content=content,
            section_label=section_label,
            created_at=created_at or utc_now_iso(),
        )
        self._persist([annotation, *self._annotations])
        self.index.add(annotation)
        try:
            self._mark(annotation)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Failed to add clickable highlight: {e}")
        return annotation

    def save_selection(self) -> Annotation | None:
        sel = self.selection
        if sel is None or sel.is_existing:
            return None
        return self.save_highlight(sel.identifier, sel.text, section_label=sel.section_label)

    def remove_highlight(self, identifier: str) -> bool:
        try:
            self._rendition.unmark(identifier)
            logger.debug(f"Removed highlight: {identifier}")
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Failed to remove highlight: {identifier}: {e}")

        self.selection = None
        idx = self._find(identifier)
        if idx is None:
            return False
        remaining = self._annotations[:idx] + self._annotations[idx + 1 :]
        self._persist(remaining)
        self.index.remove(identifier)
        return True

    def edit_highlight(
        self,
        identifier: str,
        *,
        note: str | None = None,
        tags: Iterable[str] | None = None,
        color: str | None = None,
    ) -> Annotation | None:
        idx = self._find(identifier)
        if idx is None:
            return None

        changes: dict[str, object] = {"updated_at": utc_now_iso()}
        if note is not None:
            changes["note"] = note
        if tags is not None:
            changes["classification_tags"] = [t.strip() for t in tags if t and t.strip()]
        if color is not None:
            changes["color"] = color

        updated = self._annotations[idx].model_copy(update=changes)
        annotations = list(self._annotations)
        annotations[idx] = updated
        self._persist(annotations)
        self.index.update(identifier, updated)

        if color is not None:
            try:
                self._rendition.unmark(identifier)
                self._mark(updated)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Failed to repaint highlight {identifier}: {e}")
        return updated

    def replace_all(self, annotations: Iterable[Annotation]) -> None:
        self._persist(list(annotations))
        self.index.rebuild(self._annotations)
