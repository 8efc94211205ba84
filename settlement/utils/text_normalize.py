from __future__ import annotations

import unicodedata
from typing import Optional

# Normalization for status codes typed or selected in different screens
# - Strips accents ("revisión" -> "revision")
# - Removes zero-width and direction control chars
# - Lowercases and joins words with underscores ("En Revisión" -> "en_revision")

_REMOVE_CHARS = "\u200c\u200d\u200e\u200f\u202a\u202b\u202c\u202d\u202e\ufeff\ufe0f"
_SUBS = str.maketrans({"\u00a0": " ", "\u202f": " ", "-": " ", "_": " "})


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_status_key(value: Optional[str]) -> str:
    """Reduce a status spelling to a lookup key; non-strings become ""."""
    if not isinstance(value, str):
        return ""
    t = value.translate(str.maketrans("", "", _REMOVE_CHARS))
    t = strip_accents(t).translate(_SUBS).lower()
    return "_".join(t.split())
