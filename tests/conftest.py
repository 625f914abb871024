# tests/conftest.py

from __future__ import annotations

from typing import Callable, Dict

import jwt
import pytest
from fastapi.testclient import TestClient

from fakes import JWT_SECRET, FakeSupabase
from labguard.config import Settings
from labguard.main import create_app


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://lab.supabase.test",
        anon_key="anon-key",
        service_role_key="service-key",
    )


@pytest.fixture
def fake() -> FakeSupabase:
    fake = FakeSupabase()
    fake.add_account("admin-1", "Ana Admin", "admin")
    fake.add_account("recep-1", "Rosa Recepción", "recepcion")
    fake.add_account("analyst-1", "Luis Analista", "analista")
    fake.add_account("analyst-en", "Lena Analyst", "analyst")
    fake.add_account("eval-1", "Eva Evaluadora", "evaluador")
    fake.add_account("eval-2", "Evan Evaluator", "evaluator")
    fake.add_account("pending-1", "Pedro Pendiente")
    return fake


@pytest.fixture
def client(settings, fake) -> TestClient:
    app = create_app(settings, supabase=fake, supabase_anon=fake)
    return TestClient(app)


@pytest.fixture
def make_token(settings) -> Callable[..., str]:
    def _make(sub="admin-1", iss=None, **claims) -> str:
        payload = {"sub": sub, "iss": iss or settings.expected_issuer, "role": "authenticated", **claims}
        if sub is None:
            payload.pop("sub")
        return jwt.encode(payload, JWT_SECRET, algorithm="HS256")

    return _make


@pytest.fixture
def headers_for(make_token) -> Callable[[str], Dict[str, str]]:
    def _headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub=user_id)}"}

    return _headers
