from __future__ import annotations

import logging
import re
from typing import Optional

import fitz  # PyMuPDF

from ..errors import InvalidInput

logger = logging.getLogger(__name__)

FULL_TEXT_LIMIT = 10000


def _clean_text(text: str) -> str:
    text = text.replace("\x00", " ")
    text = re.sub(r"[ \t]+", " ", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def extract_text_from_bytes(data: bytes) -> str:
    """Plain text of a PDF held in memory. Raises ``InvalidInput`` for unreadable files."""
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            texts: list[str] = []
            for page in doc:
                texts.append(page.get_text("text"))
    except (RuntimeError, ValueError) as exc:
        logger.warning(f"Could not read PDF: {exc}")
        raise InvalidInput(f"Could not read PDF: {exc}") from exc
    return _clean_text("\n".join(texts))


def excerpt(text: Optional[str], limit: int = FULL_TEXT_LIMIT) -> str:
    return (text or "")[:limit]
