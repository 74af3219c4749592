import asyncio
import os
import time
from io import BytesIO
from pathlib import Path

import pytest
from fastapi import UploadFile

from app.core.errors import ExtractionError, PersistenceError
from app.services.ingestion.pdf_text import extract_pdf_text
from app.storage.files import LocalDocumentStore, sanitize_filename


def test_save_uses_unique_prefixed_name(temp_data_dir: Path):
    store = LocalDocumentStore()
    data = b"%PDF-1.4 fake pdf content"

    a = asyncio.run(store.save(UploadFile(file=BytesIO(data), filename="report.pdf")))
    b = asyncio.run(store.save(UploadFile(file=BytesIO(data), filename="report.pdf")))

    assert a.stored_path != b.stored_path
    assert a.stored_filename.endswith("_report.pdf")
    assert a.size_bytes == len(data)
    assert Path(a.stored_path).read_bytes() == data
    assert Path(a.stored_path).parent == temp_data_dir / "uploads"
    # no temp files left behind
    assert not list((temp_data_dir / "uploads").glob("*.tmp"))


def test_save_sanitizes_path_traversal(temp_data_dir: Path):
    store = LocalDocumentStore()

    saved = asyncio.run(store.save(UploadFile(file=BytesIO(b"%PDF-1.4"), filename="../../etc/passwd.pdf")))

    assert not (temp_data_dir / "etc").exists()
    assert Path(saved.stored_path).parent == temp_data_dir / "uploads"
    assert sanitize_filename("../../etc/passwd.pdf") == "passwd.pdf"
    assert sanitize_filename("") == "file"


def test_save_enforces_max_bytes(temp_data_dir: Path):
    store = LocalDocumentStore(max_bytes=8)

    with pytest.raises(PersistenceError):
        asyncio.run(store.save(UploadFile(file=BytesIO(b"%PDF-1.4 too long"), filename="big.pdf")))

    assert list((temp_data_dir / "uploads").iterdir()) == []


def test_sweep_stale_removes_only_old_files(temp_data_dir: Path):
    root = temp_data_dir / "uploads"
    old = root / "old_report.pdf"
    fresh = root / "fresh_report.pdf"
    old.write_bytes(b"x")
    fresh.write_bytes(b"y")
    two_days_ago = time.time() - 2 * 24 * 3600
    os.utime(old, (two_days_ago, two_days_ago))

    removed = LocalDocumentStore().sweep_stale(24 * 3600)

    assert removed == 1
    assert not old.exists()
    assert fresh.exists()


def test_sweep_stale_missing_root(tmp_path: Path):
    assert LocalDocumentStore(root=tmp_path / "nope").sweep_stale(60) == 0


def test_extract_pdf_text_reads_pages(tmp_path: Path, pdf_bytes):
    p = tmp_path / "report.pdf"
    p.write_bytes(pdf_bytes)

    assert "Q1 results" in extract_pdf_text(p)


def test_extract_pdf_text_rejects_too_many_pages(tmp_path: Path, pdf_bytes):
    p = tmp_path / "report.pdf"
    p.write_bytes(pdf_bytes)

    with pytest.raises(ExtractionError, match="PDF_TOO_MANY_PAGES"):
        extract_pdf_text(p, max_pages=0)


def test_extract_pdf_text_missing_file(tmp_path: Path):
    with pytest.raises(ExtractionError, match="INVALID_PDF"):
        extract_pdf_text(tmp_path / "missing.pdf")
