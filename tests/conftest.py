import os
from pathlib import Path

import fitz
import pytest

os.environ.setdefault("SEARCH_ENDPOINT", "https://unit-test.search.windows.net")
os.environ.setdefault("SEARCH_INDEX_NAME", "documents-index")
os.environ.setdefault("SEARCH_ADMIN_KEY", "test-admin-key")
os.environ.setdefault("EXTRACTION_ENDPOINT", "https://unit-test.cognitiveservices.azure.com")
os.environ.setdefault("EXTRACTION_KEY", "test-extraction-key")
os.environ.setdefault("BLOB_STORAGE_CONNECTION_STRING", "UseDevelopmentStorage=true")

from app.core.config import settings  # noqa: E402
from app.core.errors import ExternalServiceError, SemanticModeUnavailableError  # noqa: E402
from app.models.documents import BatchItemResult  # noqa: E402
from app.services.search.index_client import build_index_schema  # noqa: E402


class FakeSearchIndex:
    """
    In-memory stand-in for AzureSearchIndex.
    """

    def __init__(self, *, exists: bool = False, semantic_supported: bool = True):
        self.index_name = "documents-index"
        self.exists = exists
        self.semantic_supported = semantic_supported
        self.docs: dict[str, dict] = {}
        self.calls: list[str] = []
        self.creates = 0
        self.query_modes: list[bool] = []

        self.fail_get_index = False
        self.fail_upsert = False
        self.fail_query = False
        self.fail_delete = False

    def schema(self, *, semantic: bool):
        return build_index_schema(self.index_name, semantic_configuration="default" if semantic else None)

    def get_index(self):
        self.calls.append("get_index")
        if self.fail_get_index:
            raise ExternalServiceError("service unreachable", status_code=503)
        return {"name": self.index_name} if self.exists else None

    def create_or_update_index(self, index):
        self.calls.append("create_or_update_index")
        self.creates += 1
        self.exists = True

    def upsert(self, documents):
        self.calls.append("upsert")
        if self.fail_upsert:
            return [BatchItemResult(key=d["id"], succeeded=False, status_code=400) for d in documents]
        for d in documents:
            self.docs[d["id"]] = d
        return [BatchItemResult(key=d["id"], succeeded=True, status_code=201) for d in documents]

    def query(self, text, *, top, semantic):
        self.calls.append("query")
        self.query_modes.append(semantic)
        if self.fail_query:
            raise ExternalServiceError("Search failed: boom", status_code=500)
        if semantic and not self.semantic_supported:
            raise SemanticModeUnavailableError("Semantic search is not enabled", status_code=400)

        hits = []
        for d in self.docs.values():
            if text.lower() in d["content"].lower():
                hits.append(
                    {
                        "id": d["id"],
                        "fileName": d["fileName"],
                        "@search.score": 1.5,
                        "@search.highlights": {"content": [f"<em>{text}</em>"]},
                    }
                )
        return hits[:top]

    def get_document(self, key):
        self.calls.append("get_document")
        d = self.docs.get(key)
        return {"id": d["id"], "fileName": d["fileName"]} if d else None

    def delete_by_key(self, keys):
        self.calls.append("delete_by_key")
        if self.fail_delete:
            raise ExternalServiceError("Delete failed: forbidden", status_code=403)
        for k in keys:
            self.docs.pop(k, None)
        return [BatchItemResult(key=k, succeeded=True, status_code=200) for k in keys]


@pytest.fixture()
def temp_data_dir(tmp_path: Path):
    """
    Uses a temporary DATA_DIR for tests and restores the original
    value after execution.
    """
    old = settings.DATA_DIR
    settings.DATA_DIR = str(tmp_path)
    (tmp_path / "uploads").mkdir(parents=True, exist_ok=True)
    yield tmp_path
    settings.DATA_DIR = old


@pytest.fixture()
def fake_index() -> FakeSearchIndex:
    return FakeSearchIndex()


def make_pdf_bytes(text: str = "Q1 results") -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_text((72, 72), text)
    b = doc.tobytes()
    doc.close()
    return b


@pytest.fixture()
def pdf_bytes() -> bytes:
    return make_pdf_bytes("Q1 results")
