"""
Environment-driven settings for the LabGuard API.

Required:
  - SUPABASE_URL
  - SUPABASE_ANON_KEY
  - SUPABASE_SERVICE_ROLE_KEY

Optional:
  - FRONTEND_URL (comma separated CORS origins)
  - PORT, SUPABASE_TIMEOUT, LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load env from repo root without clobbering real environment
env_path = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(env_path, override=False)

DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:5175",
    "http://localhost:5176",
    "http://localhost:5177",
]

REQUIRED_VARS = ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY")


@dataclass
class Settings:
    supabase_url: str
    anon_key: str
    service_role_key: str
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ORIGINS))
    port: int = 4000
    timeout: float = 30.0
    log_level: str = "INFO"

    @property
    def expected_issuer(self) -> str:
        """Issuer claim Supabase stamps on access tokens for this project."""
        return f"{self.supabase_url}/auth/v1"


def _get_cors_origins() -> List[str]:
    raw = os.getenv("FRONTEND_URL") or ""
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or list(DEFAULT_ORIGINS)


def load_settings() -> Settings:
    """Read settings from the environment. Missing Supabase values are fatal."""
    missing = [name for name in REQUIRED_VARS if not (os.getenv(name) or "").strip()]
    if missing:
        raise RuntimeError(f"Missing Supabase environment variables: {', '.join(missing)}")

    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", "").strip().rstrip("/"),
        anon_key=os.getenv("SUPABASE_ANON_KEY", "").strip(),
        service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip(),
        cors_origins=_get_cors_origins(),
        port=int(os.getenv("PORT", "4000")),
        timeout=float(os.getenv("SUPABASE_TIMEOUT", "30")),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
