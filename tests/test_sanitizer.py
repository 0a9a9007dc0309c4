from __future__ import annotations

import asyncio

import httpx

from enhanced_reader_core.config import Settings
from enhanced_reader_core.sanitizer import (
    HtmlSanitizer,
    SanitizerOptions,
    decode_data_url,
    strip_blob_declarations,
)


def _client(routes: dict[str, httpx.Response]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(str(request.url), httpx.Response(404))

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _run(sanitizer: HtmlSanitizer, html: str, **kwargs) -> str:
    return asyncio.run(sanitizer.sanitize(html, **kwargs))


def test_removes_scripts_inlines_data_stylesheet_and_strips_blob_urls() -> None:
    html = """<!doctype html><html><head>
      <link rel="stylesheet" href="data:text/css,body{color:red}">
      <script>console.log('x')</script>
    </head><body style="background-image:url(blob:fake)">Hello</body></html>"""
    out = _run(HtmlSanitizer(), html)

    assert "<script" not in out
    assert "console.log" not in out
    assert "<link" not in out
    assert '<style data-inlined-from="data:text/css,body{color:red}">body{color:red}</style>' in out
    assert "<body>Hello</body>" in out
    assert out.startswith("<!doctype html>")


def test_fetches_relative_stylesheet_and_resolves_imports() -> None:
    routes = {
        "https://book.example/OEBPS/css/main.css": httpx.Response(
            200, text='@import url("base.css");\np{margin:0}'
        ),
        "https://book.example/OEBPS/css/base.css": httpx.Response(200, text="html{font-size:100%}"),
    }

    async def main() -> str:
        async with _client(routes) as client:
            return await HtmlSanitizer(client=client).sanitize(
                '<head><link rel="stylesheet" href="css/main.css"/></head>',
                base_url="https://book.example/OEBPS/ch1.xhtml",
            )

    out = asyncio.run(main())
    assert 'data-inlined-from="https://book.example/OEBPS/css/main.css"' in out
    assert "html{font-size:100%}\np{margin:0}" in out


def test_unreachable_stylesheet_leaves_empty_placeholder() -> None:
    async def main() -> str:
        async with _client({}) as client:
            return await HtmlSanitizer(client=client).sanitize(
                '<link rel="stylesheet" href="https://cdn.example/missing.css"><p>text</p>'
            )

    out = asyncio.run(main())
    assert out == '<style data-inlined-from="https://cdn.example/missing.css"></style><p>text</p>'


def test_options_can_disable_each_step() -> None:
    html = '<script>x()</script><link rel="stylesheet" href="a.css"><p style="background:url(blob:1)">t</p>'
    out = _run(HtmlSanitizer(SanitizerOptions(False, False, False)), html)
    assert out == html


def test_keeps_other_markup_and_entities() -> None:
    html = '<p class="a">Fish &amp; chips &#169;<!-- c --><br/><img src="x.png" style="width:10px"></p>'
    assert _run(HtmlSanitizer(), html) == html


def test_strip_blob_declarations_respects_data_urls() -> None:
    style = "color: red; background: url(blob:abc); mask: url(data:image/png;base64,AAA=)"
    assert strip_blob_declarations(style) == "color: red; mask: url(data:image/png;base64,AAA=)"


def test_decode_data_url() -> None:
    assert decode_data_url("data:text/css,a%7Bb:c%7D") == "a{b:c}"
    assert decode_data_url("data:text/css;base64,cHt9") == "p{}"
    assert decode_data_url("data:text/css") is None


def test_options_from_settings() -> None:
    settings = Settings(READER_REMOVE_SCRIPTS=False, READER_FETCH_TIMEOUT_S=3.0)
    opts = SanitizerOptions.from_settings(settings)
    assert opts == SanitizerOptions(inline_stylesheets=True, remove_scripts=False, strip_blob_urls=True)
    assert HtmlSanitizer.from_settings(settings)._timeout_s == 3.0


def test_svg_element_and_attribute_case_survives() -> None:
    html = '<svg viewBox="0 0 1 1"><linearGradient id="g"></linearGradient><clipPath id="c"></clipPath></svg>'
    assert _run(HtmlSanitizer(), html) == html

    blob = '<svg viewBox="0 0 1 1" style="fill:url(blob:x); stroke:red"><rect/></svg>'
    assert _run(HtmlSanitizer(), blob) == '<svg viewBox="0 0 1 1" style="stroke:red"><rect/></svg>'
