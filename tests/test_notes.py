from __future__ import annotations

from datetime import datetime

from enhanced_reader_core.models import Annotation
from enhanced_reader_core.notes import (
    append_highlight,
    build_deep_link,
    build_highlight_block,
    build_note_header,
)

NOW = datetime(2024, 3, 1, 9, 30, 0)
CFI = "epubcfi(/6/8!/4/2,/1:0,/1:10)"
TS = "2024-01-01T00:00:00+00:00"


def test_build_deep_link_encodes_like_uri_components() -> None:
    link = build_deep_link("Books/Moby Dick.epub", CFI)
    assert link == (
        "[Back to passage](obsidian://enhanced-reader?file=Books%2FMoby%20Dick.epub"
        "&cfi=epubcfi(%2F6%2F8!%2F4%2F2%2C%2F1%3A0%2C%2F1%3A10))"
    )


def test_build_highlight_block() -> None:
    a = Annotation(identifier=CFI, content="line one\nline two", section_label="Loomings", created_at=TS)
    block = build_highlight_block(a, "m.epub", now=NOW)
    lines = block.splitlines()
    assert lines[0] == "- [2024-03-01 09:30:00] "
    assert lines[1] == "  > line one\\nline two"
    assert lines[2] == "  > - Loomings"
    assert lines[4].startswith("  > [Back to passage](")


def test_append_highlight_inserts_under_existing_heading() -> None:
    note = build_note_header(title="Moby Dick", tags="notes/booknotes", now=NOW) + "\n## Highlights\n- older\n"
    a = Annotation(identifier=CFI, content="newer", note="remember", created_at=TS)
    out = append_highlight(note, a, "m.epub", now=NOW)
    assert out.index("newer") < out.index("- older")
    assert out.count("## Highlights") == 1
    assert "  > Note: remember" in out


def test_append_highlight_creates_heading() -> None:
    out = append_highlight("# Title\n", Annotation(identifier=CFI, content="x", created_at=TS), "m.epub", now=NOW)
    assert out.startswith("# Title\n\n\n## Highlights\n- [2024-03-01 09:30:00] ")


def test_build_note_header() -> None:
    assert build_note_header(title="T", tags="a/b", now=NOW) == "---\nTags: a/b\nDate: 2024-03-01 09:30:00\n---\n# T\n"
