from __future__ import annotations

from enhanced_reader_core.navigation import NavItem, TableOfContents, resolve_section_label
from enhanced_reader_core.rendering import location_identifier


class _Start:
    def __init__(self, cfi: str | None = None, text: str = "") -> None:
        self.cfi = cfi
        self._text = text

    def __str__(self) -> str:
        return self._text


class _Location:
    def __init__(self, start: object) -> None:
        self.start = start


TOC = TableOfContents(
    (
        NavItem(href="Text/ch1.xhtml", label="Chapter One"),
        NavItem(href="OEBPS/Text/ch2.xhtml", text="Chapter Two"),
        NavItem(href="notes.xhtml"),
    )
)


def test_resolve_section_label_variants() -> None:
    assert resolve_section_label(TOC, "Text/ch1.xhtml") == "Chapter One"
    assert resolve_section_label(TOC, "/Text/ch1.xhtml") == "Chapter One"
    assert resolve_section_label(TOC, "Text/ch2.xhtml") is not None
    assert resolve_section_label(TOC, "ch2.xhtml") == "Chapter Two"
    assert resolve_section_label(TOC, "notes.xhtml") == "notes.xhtml"
    assert resolve_section_label(TOC, "unknown.xhtml") == "unknown.xhtml"
    assert resolve_section_label(None, "a.xhtml") == "a.xhtml"
    assert resolve_section_label(TOC, None) is None


def test_location_identifier_shapes() -> None:
    cfi = "epubcfi(/6/8!/4/2/1:0)"
    assert location_identifier(cfi) == cfi
    assert location_identifier({"start": {"cfi": cfi}}) == cfi
    assert location_identifier(_Location(_Start(cfi=cfi))) == cfi
    assert location_identifier(_Location(_Start(text=cfi))) == cfi
    assert location_identifier({"start": {}}) == ""
    assert location_identifier({}) == ""
    assert location_identifier(None) == ""
