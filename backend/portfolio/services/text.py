from __future__ import annotations

import re
from typing import Iterable, List, Optional


NON_WORD_RE = re.compile(r"[^\w\s]")

TITLE_STOPWORDS = {
    "the",
    "and",
    "of",
    "in",
    "on",
    "at",
    "to",
    "for",
    "with",
    "by",
    "from",
    "that",
    "this",
}

QUESTION_STOPWORDS = {
    "what", "how", "why", "when", "where", "who", "which", "that", "this",
    "is", "are", "was", "were", "be", "been", "being", "have", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "may", "might",
    "can", "the", "a", "an", "and", "or", "but", "in", "on", "at", "to",
    "for", "of", "with", "by", "about", "your", "my", "me", "you", "i",
}


def normalize_text(value: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (value or "")).strip().lower()


def tokenize(value: Optional[str], min_length: int = 0) -> List[str]:
    """Lowercase, replace punctuation with spaces and split.

    Tokens of length ``<= min_length`` are dropped.
    """
    text = NON_WORD_RE.sub(" ", normalize_text(value))
    return [token for token in text.split() if len(token) > min_length]


def significant_words(value: Optional[str], min_length: int = 3) -> List[str]:
    return [t for t in tokenize(value, min_length) if t not in TITLE_STOPWORDS]


def extract_question_keywords(question: Optional[str], limit: int = 10) -> List[str]:
    words = [t for t in tokenize(question, 2) if t not in QUESTION_STOPWORDS]
    return words[:limit]


def split_delimited(value: Optional[str], sep: str = ";") -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(sep) if part.strip()]


def dedupe_keep_order(items: Iterable[str], ignore_case: bool = True) -> List[str]:
    out: List[str] = []
    seen = set()
    for item in items:
        if not isinstance(item, str):
            continue
        clean = item.strip()
        if not clean:
            continue
        key = clean.lower() if ignore_case else clean
        if key in seen:
            continue
        seen.add(key)
        out.append(clean)
    return out
