"""Keyword tokenizer shared by ingestion and search."""
import re
from typing import Iterable, List, Optional

# Characters that separate words in titles, keywords and queries.
WORD_SPLITTERS = " \n\t:,;.-+=[]!?()$%^&*<>\"`"

_SPLIT_RE = re.compile("[" + re.escape(WORD_SPLITTERS) + "]+")


def normalize(text: Optional[str]) -> List[str]:
    """Lowercase `text` and split it into words, dropping empty ones."""
    if not text:
        return []
    return [word for word in _SPLIT_RE.split(text.lower()) if word]


def normalize_keywords(values: Iterable[str]) -> List[str]:
    """Flatten raw query strings (e.g. repeated `q` params) into one token list."""
    return normalize(" ".join(v for v in values if v))


def title_to_keywords(title: str) -> str:
    return " ".join(normalize(title))


def keywords_for(keywords: Optional[str], title: str) -> str:
    """Keywords value to persist: normalized input, or derived from the title when blank."""
    words = normalize(keywords)
    if words:
        return " ".join(words)
    return title_to_keywords(title)
