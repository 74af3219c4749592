import logging
import os
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Final

from fastapi import UploadFile

from app.core.config import settings
from app.core.errors import PersistenceError

logger = logging.getLogger(__name__)

FILENAME_SAFE_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")

PDF_MAGIC: Final[bytes] = b"%PDF"


@dataclass(frozen=True)
class SavedFile:
    original_filename: str
    stored_filename: str
    content_type: str
    size_bytes: int
    stored_path: str
    created_at: str


def sanitize_filename(filename: str) -> str:
    filename = os.path.basename((filename or "").strip())
    filename = FILENAME_SAFE_RE.sub("_", filename)
    return filename or "file"


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def get_upload_root() -> Path:
    return Path(settings.DATA_DIR) / "uploads"


def sniff_pdf(first_bytes: bytes) -> bool:
    """
    OWASP uploading document risk, prevent from spoofing.
    Basic 'magic bytes' verification instead of trusting the extension alone.
    """
    return first_bytes.startswith(PDF_MAGIC)


async def read_first_bytes(upload_file: UploadFile, n: int = 16) -> bytes:
    """
    Read first n bytes and reset pointer.
    """
    await upload_file.seek(0)
    b = await upload_file.read(n)
    await upload_file.seek(0)
    return b


class LocalDocumentStore:
    """
    Working storage for uploads waiting for (or done with) text extraction.

    Files are staged as <uuid-hex>_<sanitized original name>, so concurrent
    uploads never share a path. Nothing here is transactional with the index:
    staged files are left in place and removed by sweep_stale().
    """

    def __init__(self, root: Path | None = None, max_bytes: int | None = None):
        self._root = root
        self.max_bytes = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_MB * 1024 * 1024

    @property
    def root(self) -> Path:
        # resolved lazily so DATA_DIR changes (tests) are honoured
        return self._root if self._root is not None else get_upload_root()

    def staged_path_for(self, original_filename: str) -> Path:
        return self.root / f"{uuid.uuid4().hex}_{sanitize_filename(original_filename)}"

    async def save(self, upload_file: UploadFile) -> SavedFile:
        """
        Streams UploadFile to disk in chunks and enforces max_bytes.
        Uses atomic write: write to temp -> rename to final file.
        """
        original_filename = upload_file.filename or "file"

        try:
            ensure_dir(self.root)
        except OSError as e:
            raise PersistenceError(f"Cannot create working storage: {e}") from e

        final_path = self.staged_path_for(original_filename)
        tmp_path = final_path.with_name(final_path.name + ".tmp")

        total = 0
        chunk_size = 1024 * 1024  # 1MB

        await upload_file.seek(0)

        try:
            with tmp_path.open("wb") as f:
                while True:
                    chunk = await upload_file.read(chunk_size)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > self.max_bytes:
                        raise PersistenceError(
                            f"File exceeds max size {self.max_bytes // (1024 * 1024)} MB."
                        )
                    f.write(chunk)

            tmp_path.replace(final_path)

        except PersistenceError:
            tmp_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(str(e)) from e

        logger.info("Staged %s at %s (%d bytes)", original_filename, final_path, total)

        return SavedFile(
            original_filename=original_filename,
            stored_filename=final_path.name,
            content_type=upload_file.content_type or "application/octet-stream",
            size_bytes=total,
            stored_path=str(final_path),
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    def sweep_stale(self, max_age_seconds: float) -> int:
        """
        Delete staged files older than max_age_seconds. Returns how many were removed.
        """
        root = self.root
        if not root.exists():
            return 0

        cutoff = time.time() - max_age_seconds
        removed = 0
        for p in root.iterdir():
            if not p.is_file():
                continue
            try:
                if p.stat().st_mtime < cutoff:
                    p.unlink()
                    removed += 1
            except FileNotFoundError:
                # removed by a concurrent sweep
                continue

        if removed:
            logger.info("Swept %d stale upload(s) from %s", removed, root)

        return removed
