from __future__ import annotations

import re
import time
import unicodedata

# Kombinierende diakritische Zeichen (U+0300–U+036F)
_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_WHITESPACE = re.compile(r"\s+")


def normalize(value: str) -> str:
    """
    Entfernt vietnamesische Diakritika und Groß-/Kleinschreibung.

    "đ" zerfällt unter NFD nicht und wird daher explizit auf "d" abgebildet.
    Kleinschreibung passiert vor der Zerlegung, damit das Ergebnis idempotent ist.
    """
    decomposed = unicodedata.normalize("NFD", value.lower())
    stripped = _COMBINING_MARKS.sub("", decomposed)
    return stripped.replace("đ", "d").strip()


def build_slug(name: str, barcode: str | None = None) -> str:
    """Builds the persisted search key from the product name and optional barcode."""
    slug = normalize(name)
    return f"{slug} {barcode}" if barcode else slug


def tokenize(normalized_query: str) -> list[str]:
    return [token for token in _WHITESPACE.split(normalized_query) if token]


def is_numeric_query(query: str) -> bool:
    """True for a trimmed query made only of ASCII digits (barcode scans)."""
    return bool(query) and query.isascii() and query.isdigit()


def now_ms() -> int:
    return int(time.time() * 1000)


def format_price(value: float) -> str:
    """Formats a price with Vietnamese thousands grouping, e.g. 25000 -> '25.000'."""
    return f"{round(value):,}".replace(",", ".")
