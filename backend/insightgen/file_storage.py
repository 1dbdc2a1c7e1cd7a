"""
File storage layer: saves uploaded files locally and hands out URLs.
Files are stored under  UPLOAD_DIR/{file_id}/{filename}  and served from
/files/{file_id}/{filename}.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote, unquote, urlsplit
from uuid import uuid4

import httpx

from insightgen.parsers import extract_text

logger = logging.getLogger(__name__)

# Project-local upload directory (relative to backend/) unless UPLOAD_DIR is set
_BACKEND_DIR = Path(__file__).resolve().parent.parent          # …/backend
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(_BACKEND_DIR / "uploads")))
FILE_BASE_URL = os.getenv("FILE_BASE_URL", "").rstrip("/")
FILES_ROUTE = "/files"


class FileNotStored(Exception):
    pass


def save_file(file_id: str, filename: str, content: bytes) -> Path:
    """Save an uploaded file and return the full path."""
    dest_dir = UPLOAD_DIR / file_id
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest_path = dest_dir / filename
    dest_path.write_bytes(content)
    logger.info(f"Stored file → {dest_path}  ({len(content)} bytes)")
    return dest_path


def get_file_path(file_id: str, filename: str) -> Optional[Path]:
    """Return the path to a previously-saved file, or None."""
    if not file_id.isalnum():
        return None
    p = UPLOAD_DIR / file_id / Path(filename).name
    return p if p.is_file() else None


def upload_file(filename: str, content: bytes) -> Dict[str, str]:
    """Store one file under a fresh id and return {"file_url": ...}."""
    safe_name = Path(filename or "upload").name
    file_id = uuid4().hex
    save_file(file_id, safe_name, content)
    return {"file_url": f"{FILE_BASE_URL}{FILES_ROUTE}/{file_id}/{quote(safe_name)}"}


def _local_location(file_url: str) -> Optional[tuple[str, str]]:
    path = file_url[len(FILE_BASE_URL):] if FILE_BASE_URL and file_url.startswith(FILE_BASE_URL) else file_url
    if not path.startswith(FILES_ROUTE + "/"):
        return None
    parts = path[len(FILES_ROUTE) + 1:].split("/", 1)
    if len(parts) != 2:
        return None
    return parts[0], unquote(parts[1])


def read_file_bytes(file_url: str) -> bytes:
    """Read a stored file back by URL; remote http(s) URLs are fetched."""
    local = _local_location(file_url)
    if local is not None:
        path = get_file_path(*local)
        if path is None:
            raise FileNotStored(f"No stored file for {file_url}")
        return path.read_bytes()
    if file_url.startswith(("http://", "https://")):
        with httpx.Client(timeout=30, follow_redirects=True) as client:
            resp = client.get(file_url)
            resp.raise_for_status()
            return resp.content
    raise FileNotStored(f"Unsupported file URL {file_url}")


def read_file_text(file_url: str) -> str:
    """Fetch a file's text content (tables as CSV, PDFs as extracted text)."""
    local = _local_location(file_url)
    filename = local[1] if local else unquote(urlsplit(file_url).path.rsplit("/", 1)[-1])
    return extract_text(read_file_bytes(file_url), filename)
