from __future__ import annotations

from datetime import datetime
from urllib.parse import quote

from enhanced_reader_core.models import Annotation

HIGHLIGHTS_HEADING = "## Highlights"
DEEP_LINK_SCHEME = "obsidian://enhanced-reader"

# Characters encodeURIComponent leaves unescaped.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def _fmt_time(now: datetime | None) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def build_deep_link(document_path: str, identifier: str, *, label: str = "Back to passage") -> str:
    file_part = quote(document_path, safe=_URI_COMPONENT_SAFE)
    cfi_part = quote(identifier, safe=_URI_COMPONENT_SAFE)
    return f"[{label}]({DEEP_LINK_SCHEME}?file={file_part}&cfi={cfi_part})"


def build_note_header(*, title: str, tags: str, now: datetime | None = None) -> str:
    return f"---\nTags: {tags}\nDate: {_fmt_time(now)}\n---\n# {title}\n"


def build_highlight_block(annotation: Annotation, document_path: str, *, now: datetime | None = None) -> str:
    text = annotation.content.replace("\n", "\\n")
    chapter = f" - {annotation.section_label}" if annotation.section_label else ""
    link = build_deep_link(document_path, annotation.identifier)
    lines = [
        f"- [{_fmt_time(now)}] ",
        f"  > {text}",
        f"  >{chapter}",
        "  >",
        f"  > {link}",
    ]
    if annotation.note:
        lines.insert(2, f"  > Note: {annotation.note}")
    return "\n".join(lines) + "\n"


def append_highlight(
    note_text: str,
    annotation: Annotation,
    document_path: str,
    *,
    now: datetime | None = None,
) -> str:
    """
    Insert the highlight right under `## Highlights` (newest first),
    adding the heading at the end of the note when it is missing.
    """
    block = build_highlight_block(annotation, document_path, now=now)
    if HIGHLIGHTS_HEADING in note_text:
        return note_text.replace(HIGHLIGHTS_HEADING, f"{HIGHLIGHTS_HEADING}\n{block}", 1)
    return f"{note_text}\n\n{HIGHLIGHTS_HEADING}\n{block}"
