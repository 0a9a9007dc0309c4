from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import NamedTuple, Protocol, TypeVar

CFI_PREFIX = "epubcfi("
CFI_SUFFIX = ")"

# Scale used by the legacy single-number position key.
LEGACY_NODE_SCALE = 10_000

_PREFIX_RE = re.compile(r"^epubcfi\(")
_SUFFIX_RE = re.compile(r"\)$")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_SECTION_KEY_RE = re.compile(r"^epubcfi\((/\d+(?:/\d+)*)")
_VALID_RE = re.compile(r"epubcfi\((/\d+)")


class Position(NamedTuple):
    """
    A (node index, character offset) pair.

    Tuple ordering compares the node first and the offset second, so long text
    nodes cannot bleed into the next node the way `node * 10000 + offset` does.
    """

    node: int = 0
    offset: int = 0

    @property
    def legacy_key(self) -> int:
        return self.node * LEGACY_NODE_SCALE + self.offset


@dataclass(frozen=True)
class ParsedCfi:
    section: str
    path: str
    start: Position
    end: Position

    @property
    def is_point(self) -> bool:
        return self.start == self.end


class HasIdentifier(Protocol):
    identifier: str


T = TypeVar("T", bound=HasIdentifier)


def _leading_int(text: str) -> int:
    m = _LEADING_INT_RE.match(text or "")
    return int(m.group(1)) if m else 0


def parse_position(component: str) -> Position:
    """
    "/1:5" -> Position(node=1, offset=5). Unparseable halves default to 0.
    """
    cleaned = component[1:] if component.startswith("/") else component
    node_str, _, rest = cleaned.partition(":")
    offset_str = rest.split(":", 1)[0]
    return Position(_leading_int(node_str), _leading_int(offset_str))


def parse(identifier: str) -> ParsedCfi:
    """
    Split an identifier such as `epubcfi(/6/8!/4/2[ch1]/2,/1:0,/1:10)` into
    section (`/6/8`), element path (`/4/2[ch1]/2`) and start/end positions.

    Identifiers without a range part come back as a point at (0, 0). Malformed
    strings never raise; they degrade to an all-zero range.
    """
    cleaned = _SUFFIX_RE.sub("", _PREFIX_RE.sub("", identifier))
    pieces = cleaned.split("!")
    section = pieces[0]
    rest = pieces[1] if len(pieces) > 1 else ""

    if not rest:
        return ParsedCfi(section=section, path="", start=Position(), end=Position())

    parts = rest.split(",")
    path = parts[0]
    start = end = Position()
    if len(parts) >= 3:
        start = parse_position(parts[1])
        end = parse_position(parts[2])
    elif len(parts) == 2:
        start = end = parse_position(parts[1])

    return ParsedCfi(section=section, path=path, start=start, end=end)


def overlaps(a: str, b: str) -> bool:
    """
    True when the two ranges share at least one character (half-open).

    Touching ranges do not overlap, and two points only overlap when the
    identifiers are the same string.
    """
    if a == b:
        return True
    try:
        pa = parse(a)
        pb = parse(b)
    except Exception:  # noqa: BLE001
        return a == b
    if pa.section != pb.section:
        return False
    return pa.start < pb.end and pa.end > pb.start


def contains(outer: str, inner: str) -> bool:
    if outer == inner:
        return True
    try:
        po = parse(outer)
        pi = parse(inner)
    except Exception:  # noqa: BLE001
        return False
    if po.section != pi.section:
        return False
    return po.start <= pi.start and po.end >= pi.end


def find_overlapping(selection: str, annotations: Iterable[T]) -> list[T]:
    return [a for a in annotations if getattr(a, "identifier", None) and overlaps(selection, a.identifier)]


def is_valid(identifier: object) -> bool:
    """
    Cheap syntactic gate used before rendering or indexing an identifier.

    Passing does not mean `parse` will find a meaningful range.
    """
    if not identifier or not isinstance(identifier, str):
        return False
    if not identifier.startswith(CFI_PREFIX) or not identifier.endswith(CFI_SUFFIX):
        return False
    return _VALID_RE.search(identifier) is not None


def section_key(identifier: object) -> str | None:
    """
    Leading numeric path right inside the wrapper: `epubcfi(/6/8!/4...)` -> `/6/8`.
    """
    if not isinstance(identifier, str):
        return None
    m = _SECTION_KEY_RE.match(identifier)
    return m.group(1) if m else None
