from enhanced_reader_core.cfi import ParsedCfi, Position, contains, find_overlapping, is_valid, overlaps, parse, section_key
from enhanced_reader_core.config import Settings, load_settings
from enhanced_reader_core.controller import HighlightController, SelectionState
from enhanced_reader_core.debounce import Debouncer
from enhanced_reader_core.index import IndexStats, SectionIndex
from enhanced_reader_core.models import Annotation
from enhanced_reader_core.sanitizer import HtmlSanitizer, SanitizerOptions
from enhanced_reader_core.search import BookSearcher, SearchResult, search_book
from enhanced_reader_core.store import InMemoryAnnotationStore, JsonFileAnnotationStore, StoreError

__all__ = [
    "__version__",
    "Annotation",
    "BookSearcher",
    "Debouncer",
    "HighlightController",
    "HtmlSanitizer",
    "InMemoryAnnotationStore",
    "IndexStats",
    "JsonFileAnnotationStore",
    "ParsedCfi",
    "Position",
    "SanitizerOptions",
    "SearchResult",
    "SectionIndex",
    "SelectionState",
    "Settings",
    "StoreError",
    "contains",
    "find_overlapping",
    "is_valid",
    "load_settings",
    "overlaps",
    "parse",
    "search_book",
    "section_key",
]

__version__ = "0.0.0"
