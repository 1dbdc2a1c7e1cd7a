"""
File-to-text extraction: dispatches by extension and returns the text the
analysis prompt embeds.
Supported formats: CSV/TSV, JSON/JSONL, plain text, Excel (.xlsx/.xls), PDF.
"""
from __future__ import annotations

import io
import logging
from pathlib import Path

import pandas as pd
from PyPDF2 import PdfReader

logger = logging.getLogger(__name__)

# Extension → extractor mapping
_EXT_MAP = {
    ".csv": "text",
    ".tsv": "text",
    ".txt": "text",
    ".json": "text",
    ".jsonl": "text",
    ".ndjson": "text",
    ".xlsx": "excel",
    ".xls": "excel",
    ".pdf": "pdf",
}

SUPPORTED_EXTENSIONS = set(_EXT_MAP.keys())


def is_supported(filename: str) -> bool:
    return Path(filename or "").suffix.lower() in SUPPORTED_EXTENSIONS


def _extract_plain(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def _extract_excel(content: bytes) -> str:
    """Every sheet rendered as CSV, one block per sheet."""
    sheets = pd.read_excel(io.BytesIO(content), sheet_name=None)
    blocks = []
    for name, df in sheets.items():
        if df.empty:
            continue
        blocks.append(f"## Sheet: {name}\n{df.to_csv(index=False)}")
    return "\n".join(blocks)


def _extract_pdf(content: bytes) -> str:
    reader = PdfReader(io.BytesIO(content))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n\n".join(p.strip() for p in pages if p.strip())


_EXTRACTORS = {
    "text": _extract_plain,
    "excel": _extract_excel,
    "pdf": _extract_pdf,
}


def extract_text(content: bytes, filename: str) -> str:
    """
    Convert file bytes to prompt-ready text.

    Unknown extensions are decoded as UTF-8 (remote URLs often have none).
    Raises ValueError when a binary format cannot be read.
    """
    ext = Path(filename or "").suffix.lower()
    fmt = _EXT_MAP.get(ext, "text")
    try:
        text = _EXTRACTORS[fmt](content)
    except Exception as e:
        raise ValueError(f"Failed to read {filename}: {e}") from e
    logger.info(f"Extracted {len(text)} chars from {filename}")
    return text
