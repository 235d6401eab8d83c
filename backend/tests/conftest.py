"""
NoteForge Backend - Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Each test gets its own SQLite database (aiosqlite) and storage
       directory, a scripted completion provider instead of a real one, and
       an HTTPX client talking to the app over ASGITransport.

Fixture Hierarchy:
    settings       Settings pointed at tmp_path
    fake_llm       FakeLLM (scripted deltas, switchable failures)
    services       ServiceContainer with tables created
    app / client   FastAPI app with the container injected, HTTPX client
    auth_headers   Bearer token signed with the test secret
"""

import os
import tempfile
import time
from typing import AsyncIterator, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

# Settings are read at import time by noteforge.config; keep tests away from
# any real database or provider key.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./noteforge_test.db"
os.environ["OPENROUTER_API_KEY"] = "test-key-not-real"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="noteforge_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from noteforge.config import Settings  # noqa: E402
from noteforge.dependencies import build_services  # noqa: E402
from noteforge.exceptions import ProviderError  # noqa: E402
from noteforge.services.llm_base import LLMService  # noqa: E402

TEST_JWT_SECRET = "test-jwt-secret"
TEST_USER_ID = "0b5c8a52-3d0f-4d8e-9a43-7f3a1c9e2b11"


class FakeLLM(LLMService):
    """Completion provider that replays `deltas` and records every prompt."""

    name = "fake"

    def __init__(self, deltas: Optional[List[str]] = None):
        self.deltas = deltas if deltas is not None else ["# Notes\n\n", "- first", "\n- second"]
        self.fail_start = False
        self.fail_after: Optional[int] = None
        self.healthy = True
        self.calls: List[tuple] = []

    async def start_stream(self, model_name: str, prompt: str) -> AsyncIterator[str]:
        self.calls.append((model_name, prompt))
        if self.fail_start:
            raise ProviderError(provider=self.name, context={"model": model_name})
        return self._iter()

    async def _iter(self) -> AsyncIterator[str]:
        for index, delta in enumerate(self.deltas):
            if self.fail_after is not None and index >= self.fail_after:
                raise RuntimeError("connection reset by provider")
            yield delta

    async def health_check(self) -> bool:
        return self.healthy


def make_token(
    sub: Optional[str] = TEST_USER_ID,
    secret: str = TEST_JWT_SECRET,
    audience: str = "authenticated",
    expires_in: int = 3600,
    email: str = "writer@example.com",
) -> str:
    claims = {"aud": audience, "exp": int(time.time()) + expires_in, "email": email}
    if sub is not None:
        claims["sub"] = sub
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def settings(tmp_path, temp_storage):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'content.db'}",
        openrouter_api_key="test-key-not-real",
        auth_jwt_secret=TEST_JWT_SECRET,
        storage_root=temp_storage,
        autosave_delay_ms=50,
        rate_limit_requests=10000,
        cb_failure_threshold=2,
        cb_recovery_timeout=60,
        log_level="WARNING",
    )


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest_asyncio.fixture
async def services(settings, fake_llm):
    container = build_services(settings, llm=fake_llm)
    await container.database.create_all()
    yield container
    await container.close()


@pytest.fixture
def app(services):
    from noteforge.main import create_app
    return create_app(services=services)


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX client routed straight into the app; no server is started.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def sample_png_bytes():
    """1x1 transparent PNG."""
    return bytes.fromhex(
        "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
        "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
    )


def build_pdf(text: str) -> bytes:
    """
    Writes a one-page PDF showing `text` in Helvetica, with a correct xref
    table so pypdf reads it without repair.
    """
    stream = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 5 0 R >> >> /Contents 4 0 R >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"
    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_at}\n%%EOF\n"
    ).encode()
    return bytes(out)


def build_docx(paragraphs: List[str]) -> bytes:
    """Minimal WordprocessingML package mammoth can convert."""
    import io
    import zipfile

    body = "".join(
        f"<w:p><w:r><w:t>{text}</w:t></w:r></w:p>" for text in paragraphs
    )
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
        f"<w:body>{body}</w:body></w:document>"
    )
    content_types = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
        '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
        '<Default Extension="xml" ContentType="application/xml"/>'
        '<Override PartName="/word/document.xml" '
        'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
        "</Types>"
    )
    rels = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
        '<Relationship Id="rId1" '
        'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
        'Target="word/document.xml"/>'
        "</Relationships>"
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as package:
        package.writestr("[Content_Types].xml", content_types)
        package.writestr("_rels/.rels", rels)
        package.writestr("word/document.xml", document)
    return buffer.getvalue()
