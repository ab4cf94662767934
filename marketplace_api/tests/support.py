"""
Shared harness for API tests.

Each test case gets its own SQLite database (aiosqlite) with the schema created from
the ORM metadata, and the application's session dependency is pointed at it.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import unittest
from typing import Any, Dict, Optional

# Must be set before the application module is imported
_UPLOAD_ROOT = tempfile.mkdtemp(prefix="marketplace-uploads-")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("AUTO_SEED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("UPLOAD_DIR", _UPLOAD_ROOT)
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx  # noqa: E402
from sqlalchemy import update  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

import src.db.models  # noqa: E402,F401
from src.api.main import app  # noqa: E402
from src.db.base import Base  # noqa: E402
from src.db.models.profiles import Profile  # noqa: E402
from src.db.session import get_async_session  # noqa: E402
from src.services.search_cache import search_cache, similar_cache  # noqa: E402

DEFAULT_PASSWORD = "s3cret-pass"

LISTING_PAYLOAD: Dict[str, Any] = {
    "title": "2004 Mazda RX-8",
    "make": "Mazda",
    "model": "RX-8",
    "year": 2004,
    "price": 9500,
    "location": "Portland, OR",
    "mileage": 98000,
    "transmission": "manual",
}


class ApiTestCase(unittest.IsolatedAsyncioTestCase):
    """Async test case with a fresh database and an HTTP client bound to the app."""

    async def asyncSetUp(self) -> None:
        self._tmpdir = tempfile.mkdtemp(prefix="marketplace-db-")
        self.engine = create_async_engine(
            f"sqlite+aiosqlite:///{os.path.join(self._tmpdir, 'test.db')}", poolclass=NullPool
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.session_maker = async_sessionmaker(bind=self.engine, expire_on_commit=False, autoflush=False)

        async def _session_override():
            async with self.session_maker() as session:
                yield session

        app.dependency_overrides[get_async_session] = _session_override
        await search_cache.clear()
        await similar_cache.clear()
        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self) -> None:
        await self.client.aclose()
        app.dependency_overrides.clear()
        await self.engine.dispose()
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    # Helpers

    async def register(self, email: str, password: str = DEFAULT_PASSWORD, display_name: Optional[str] = None) -> Dict[str, Any]:
        resp = await self.client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": password, "display_name": display_name},
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()

    async def login(self, email: str, password: str = DEFAULT_PASSWORD) -> Dict[str, str]:
        resp = await self.client.post("/api/v1/auth/login", data={"username": email, "password": password})
        self.assertEqual(resp.status_code, 200, resp.text)
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    async def signup(self, email: str, role: Optional[str] = None) -> tuple:
        """Register and log in; returns (profile json, auth headers)."""
        profile = await self.register(email)
        if role:
            await self.set_role(email, role)
        return profile, await self.login(email)

    async def set_role(self, email: str, role: str) -> None:
        async with self.session_maker() as session:  # type: AsyncSession
            await session.execute(update(Profile).where(Profile.email == email).values(role=role))
            await session.commit()

    async def create_listing(self, headers: Dict[str, str], **overrides: Any) -> Dict[str, Any]:
        resp = await self.client.post("/api/v1/listings", json={**LISTING_PAYLOAD, **overrides}, headers=headers)
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["listing"]

    def assertErrorEnvelope(self, resp: httpx.Response, status_code: int, message: Optional[str] = None) -> Dict[str, Any]:
        self.assertEqual(resp.status_code, status_code, resp.text)
        body = resp.json()
        self.assertEqual(body["status"], status_code)
        self.assertIn("error", body)
        if message is not None:
            self.assertEqual(body["error"]["message"], message)
        return body
