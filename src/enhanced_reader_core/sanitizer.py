from __future__ import annotations

import asyncio
import base64
import logging
import re
from dataclasses import dataclass
from html import escape as html_escape
from html.parser import HTMLParser
from urllib.parse import unquote_to_bytes, urljoin

import httpx

from enhanced_reader_core.config import Settings

logger = logging.getLogger(__name__)

_IMPORT_RE = re.compile(r"""@import\s+url\(([^)]+)\)\s*[^;]*;|@import\s+['"]([^"']+)['"];?""")
_BLOB_URL_RE = re.compile(r"url\(\s*['\"]?blob:", re.IGNORECASE)
_STYLE_ATTR_RE = re.compile(r"""\s+style\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'>]+)""", re.IGNORECASE)
_TAG_NAME_RE = re.compile(r"<([^\s/>]+)")


@dataclass(frozen=True)
class SanitizerOptions:
    inline_stylesheets: bool = True
    remove_scripts: bool = True
    strip_blob_urls: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> SanitizerOptions:
        return cls(
            inline_stylesheets=settings.inline_stylesheets,
            remove_scripts=settings.remove_scripts,
            strip_blob_urls=settings.strip_blob_urls,
        )


@dataclass
class _StylesheetSlot:
    href: str
    css: str = ""

    def render(self) -> str:
        return f'<style data-inlined-from="{html_escape(self.href, quote=True)}">{self.css}</style>'


def _split_declarations(style: str) -> list[str]:
    """Split on `;` outside parentheses and quotes (data: URLs contain `;`)."""
    decls: list[str] = []
    buf: list[str] = []
    depth = 0
    quote: str | None = None
    for ch in style:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
        elif ch == ";" and depth == 0:
            decls.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    decls.append("".join(buf))
    return [d.strip() for d in decls if d.strip()]


def strip_blob_declarations(style: str) -> str:
    kept = [d for d in _split_declarations(style) if not _BLOB_URL_RE.search(d)]
    return "; ".join(kept)


def _render_starttag(tag: str, attrs: list[tuple[str, str | None]], closed: bool) -> str:
    parts = [tag]
    for k, v in attrs:
        parts.append(k if v is None else f'{k}="{html_escape(v, quote=True)}"')
    return "<" + " ".join(parts) + (" />" if closed else ">")


class _RewritingParser(HTMLParser):
    def __init__(self, options: SanitizerOptions, base_url: str | None) -> None:
        super().__init__(convert_charrefs=False)
        self._options = options
        self._base_url = base_url
        self._in_script = False
        self._tag_case: dict[str, str] = {}
        self.pieces: list[str | _StylesheetSlot] = []

    @property
    def slots(self) -> list[_StylesheetSlot]:
        return [p for p in self.pieces if isinstance(p, _StylesheetSlot)]

    def _start(self, tag: str, attrs: list[tuple[str, str | None]], closed: bool) -> None:
        tag = tag.lower()
        opts = self._options

        if tag == "script" and opts.remove_scripts:
            self._in_script = not closed
            return

        attrs_dict = {k.lower(): v for k, v in attrs}
        if tag == "link" and opts.inline_stylesheets:
            rel = (attrs_dict.get("rel") or "").lower().split()
            href = (attrs_dict.get("href") or "").strip()
            if "stylesheet" in rel and href:
                resolved = urljoin(self._base_url, href) if self._base_url else href
                self.pieces.append(_StylesheetSlot(href=resolved))
                return

        raw = self.get_starttag_text() or _render_starttag(tag, attrs, closed)
        name = _TAG_NAME_RE.match(raw)
        if name and name.group(1).lower() == tag:
            # XHTML end tags must repeat the start tag's case (linearGradient, clipPath)
            self._tag_case[tag] = name.group(1)

        style = attrs_dict.get("style")
        if opts.strip_blob_urls and style and _BLOB_URL_RE.search(style):
            cleaned = strip_blob_declarations(style)
            replacement = f' style="{html_escape(cleaned, quote=True)}"' if cleaned else ""
            raw = _STYLE_ATTR_RE.sub(lambda _m: replacement, raw, count=1)

        self.pieces.append(raw)

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._start(tag, attrs, closed=False)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._start(tag, attrs, closed=True)

    def handle_endtag(self, tag: str) -> None:
        tag = tag.lower()
        if tag == "script" and self._options.remove_scripts:
            self._in_script = False
            return
        self.pieces.append(f"</{self._tag_case.get(tag, tag)}>")

    def handle_data(self, data: str) -> None:
        if not self._in_script:
            self.pieces.append(data)

    def handle_entityref(self, name: str) -> None:
        if not self._in_script:
            self.pieces.append(f"&{name};")

    def handle_charref(self, name: str) -> None:
        if not self._in_script:
            self.pieces.append(f"&#{name};")

    def handle_comment(self, data: str) -> None:
        self.pieces.append(f"<!--{data}-->")

    def handle_decl(self, decl: str) -> None:
        self.pieces.append(f"<!{decl}>")

    def handle_pi(self, data: str) -> None:
        self.pieces.append(f"<?{data}>")

    def unknown_decl(self, data: str) -> None:
        self.pieces.append(f"<![{data}]>")

    def output(self) -> str:
        return "".join(p.render() if isinstance(p, _StylesheetSlot) else p for p in self.pieces)


def decode_data_url(url: str) -> str | None:
    """`data:text/css,body{color:red}` -> `body{color:red}`."""
    header, sep, payload = url[5:].partition(",")
    if not sep:
        return None
    try:
        if header.lower().endswith(";base64"):
            raw = base64.b64decode(payload)
        else:
            raw = unquote_to_bytes(payload)
    except ValueError:
        return None
    return raw.decode("utf-8", errors="replace")


class HtmlSanitizer:
    """
    Cleans a section's markup before it is handed to the renderer.

    Scripts are dropped, external stylesheets are inlined as
    `<style data-inlined-from=...>` and inline declarations that point at
    `blob:` URLs are removed. A stylesheet that cannot be fetched leaves an
    empty placeholder; the rest of the document is still returned.
    """

    def __init__(
        self,
        options: SanitizerOptions | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 10.0,
    ):
        self._options = options or SanitizerOptions()
        self._client = client
        self._timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings: Settings, *, client: httpx.AsyncClient | None = None) -> HtmlSanitizer:
        return cls(SanitizerOptions.from_settings(settings), client=client, timeout_s=settings.fetch_timeout_s)

    async def sanitize(self, html: str, *, base_url: str | None = None) -> str:
        parser = _RewritingParser(self._options, base_url)
        try:
            parser.feed(html)
            parser.close()
        except Exception as e:  # noqa: BLE001
            logger.warning(f"sanitize error: {e}")
            return html

        slots = parser.slots
        if slots:
            if self._client is not None:
                await self._inline_all(self._client, slots)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_s, follow_redirects=True) as client:
                    await self._inline_all(client, slots)
        return parser.output()

    async def _inline_all(self, client: httpx.AsyncClient, slots: list[_StylesheetSlot]) -> None:
        await asyncio.gather(*(self._inline(client, slot) for slot in slots))

    async def _inline(self, client: httpx.AsyncClient, slot: _StylesheetSlot) -> None:
        css = await self.fetch_css(client, slot.href)
        if css is None:
            logger.warning(f"Failed to inline stylesheet {slot.href}")
            return
        slot.css = await self.resolve_imports(client, css, slot.href)

    async def fetch_css(self, client: httpx.AsyncClient, url: str) -> str | None:
        if url.lower().startswith("data:"):
            return decode_data_url(url)
        try:
            r = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug(f"Stylesheet fetch failed for {url}: {e}")
            return None
        if r.status_code >= 400:
            logger.debug(f"Stylesheet fetch for {url} returned {r.status_code}")
            return None
        return r.text

    async def resolve_imports(self, client: httpx.AsyncClient, css: str, base_href: str) -> str:
        """
        Replace `@import` rules with the imported text, one level deep.

        Imports that fail to load are left as they are.
        """
        matches = list(_IMPORT_RE.finditer(css))
        if not matches:
            return css

        async def load(m: re.Match[str]) -> str | None:
            raw = (m.group(1) or m.group(2) or "").strip().strip("'\"")
            try:
                url = urljoin(base_href, raw) if not base_href.lower().startswith("data:") else raw
            except ValueError:
                url = raw
            return await self.fetch_css(client, url)

        imported = await asyncio.gather(*(load(m) for m in matches))
        out = css
        for m, text in sorted(zip(matches, imported), key=lambda p: p[0].start(), reverse=True):
            if text is not None:
                out = out[: m.start()] + text + out[m.end() :]
        return out
