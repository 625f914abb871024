"""
Supabase REST access (PostgREST + GoTrue admin) over requests.

Two clients are built per process by the application factory:
  - service client: SUPABASE_SERVICE_ROLE_KEY, bypasses RLS, used for every
    registry read/write and for account resolution.
  - anon client: SUPABASE_ANON_KEY, only used for public probes (/health).

Filters follow PostgREST syntax and are passed as query params, e.g.
    {"id": eq(sample_id), "status": eq("por_asignar")}
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

logger = logging.getLogger(__name__)


class SupabaseError(Exception):
    """Error response (or transport failure) from Supabase"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


# ── PostgREST filter helpers ───────────────────────────────────────

def eq(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return f"eq.{value}"


def in_(values: Iterable[Any]) -> str:
    return "in.(" + ",".join(str(v) for v in values) + ")"


def _error_from_response(resp: requests.Response) -> SupabaseError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    # PostgREST uses "message", GoTrue uses "msg" / "error_description"
    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or body.get("error")
        or resp.text
        or f"HTTP {resp.status_code}"
    )
    return SupabaseError(
        str(message),
        status_code=resp.status_code,
        code=body.get("code") or body.get("error_code"),
        details=body.get("details"),
    )


class SupabaseClient:
    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.key = key
        self.timeout = timeout
        self.session = session or requests.Session()

    # ── plumbing ───────────────────────────────────────────────────

    def _headers(self, prefer: Optional[str] = None, bearer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {bearer or self.key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _rest_url(self, path: str) -> str:
        return f"{self.url}/rest/v1/{path}"

    def _auth_url(self, path: str) -> str:
        return f"{self.url}/auth/v1/{path}"

    def _request(
        self,
        method: str,
        url: str,
        prefer: Optional[str] = None,
        bearer: Optional[str] = None,
        **kwargs,
    ) -> Any:
        try:
            resp = self.session.request(
                method,
                url,
                headers=self._headers(prefer, bearer),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error("Supabase %s %s failed: %s", method, url, e)
            raise SupabaseError(str(e)) from e

        if resp.status_code >= 400:
            raise _error_from_response(resp)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    # ── PostgREST ──────────────────────────────────────────────────

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        return self._request("GET", self._rest_url(table), params=params) or []

    def select_one(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, str]] = None,
    ) -> Optional[Dict[str, Any]]:
        rows = self.select(table, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None

    def insert(
        self,
        table: str,
        values: Dict[str, Any],
        columns: str = "*",
        upsert: bool = False,
    ) -> List[Dict[str, Any]]:
        prefer = "return=representation"
        if upsert:
            prefer += ",resolution=merge-duplicates"
        return self._request(
            "POST",
            self._rest_url(table),
            prefer=prefer,
            params={"select": columns},
            json=values,
        ) or []

    def update(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, str],
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"select": columns}
        params.update(filters)
        return self._request(
            "PATCH",
            self._rest_url(table),
            prefer="return=representation",
            params=params,
            json=values,
        ) or []

    def delete(self, table: str, filters: Dict[str, str]) -> None:
        self._request("DELETE", self._rest_url(table), params=dict(filters))

    def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        return self._request("POST", self._rest_url(f"rpc/{function}"), json=params)

    # ── GoTrue ─────────────────────────────────────────────────────

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Account behind a session token. GoTrue rejects bad signatures and expired tokens."""
        data = self._request("GET", self._auth_url("user"), bearer=access_token)
        if isinstance(data, dict) and "user" in data:
            data = data["user"]
        return data if isinstance(data, dict) and data.get("id") else None

    def create_user(
        self,
        email: str,
        password: str,
        user_metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        data = self._request(
            "POST",
            self._auth_url("admin/users"),
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": user_metadata or {},
            },
        )
        if isinstance(data, dict) and "user" in data:
            data = data["user"]
        if not isinstance(data, dict) or not data.get("id"):
            raise SupabaseError("Failed to create user.")
        return data

    def health(self) -> bool:
        try:
            self._request("GET", self._auth_url("health"))
            return True
        except SupabaseError as e:
            logger.warning("Supabase auth health check failed: %s", e.message)
            return False
