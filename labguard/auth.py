"""
Bearer-token authorization for Supabase sessions.

Validation happens in two steps:
  1. Claim peek: the JWT payload is decoded WITHOUT signature verification,
     only to read `sub` and check `iss` against this project's issuer.
     Nothing read here is trusted for authorization.
  2. Account resolution: GoTrue `/auth/v1/user` is called with the caller's
     own token, which checks signature and expiry. The returned account must
     match `sub`. This lookup is the trust boundary.

Guards (FastAPI dependencies):
  - require_auth               any resolved account          401
  - require_admin              canonical role == admin       401 / 403
  - require_role(*slugs)       canonical role in slugs       401 / 403
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from jwt.utils import base64url_decode

from labguard.exceptions import Forbidden, Unauthenticated
from labguard.roles import ADMIN, canonical_set, normalize_role
from labguard.supabase import SupabaseClient, SupabaseError, eq

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass
class Account:
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_user(cls, user: Dict[str, Any]) -> "Account":
        metadata = user.get("user_metadata") or {}
        return cls(
            id=str(user["id"]),
            email=user.get("email"),
            full_name=metadata.get("full_name"),
            raw=user,
        )


# ── Token Validator ────────────────────────────────────────────────

def extract_bearer(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthenticated("Missing bearer token.")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthenticated("Missing bearer token.")
    return token


def peek_claims(token: str) -> Dict[str, Any]:
    """Decode the payload segment only. Header and signature are not read."""
    parts = token.split(".")
    if len(parts) != 3:
        raise Unauthenticated("Invalid session.", {"detail": "Token inválido: se esperaban 3 segmentos."})
    try:
        claims = json.loads(base64url_decode(parts[1]))
    except ValueError as e:
        raise Unauthenticated("Invalid session.", {"detail": f"Token inválido: {e}"})
    if not isinstance(claims, dict):
        raise Unauthenticated("Invalid session.", {"detail": "Token claims invalid."})
    return claims


class TokenValidator:
    def __init__(self, client: SupabaseClient, expected_issuer: str):
        self.client = client
        self.expected_issuer = expected_issuer

    def validate(self, authorization: Optional[str]) -> Account:
        token = extract_bearer(authorization)
        claims = peek_claims(token)

        subject = claims.get("sub")
        issuer = claims.get("iss")
        if not subject or issuer != self.expected_issuer:
            logger.info("Rejected token claims sub=%s iss=%s", subject, issuer)
            raise Unauthenticated(
                "Invalid session.",
                {
                    "detail": "Token claims invalid.",
                    "token_parts": len(token.split(".")),
                    "token_sub": subject,
                    "token_iss": issuer,
                },
            )

        try:
            user = self.client.get_user(token)
        except SupabaseError as e:
            logger.info("Account lookup failed for sub=%s: %s", subject, e.message)
            raise Unauthenticated("Invalid session.", {"detail": e.message})
        if not user:
            raise Unauthenticated("Invalid session.", {"detail": "User not found."})
        if str(user.get("id")) != str(subject):
            logger.info("Token sub=%s resolved to account %s", subject, user.get("id"))
            raise Unauthenticated("Invalid session.", {"detail": "Token subject mismatch."})

        return Account.from_user(user)


# ── Role Resolver ──────────────────────────────────────────────────

class RoleResolver:
    def __init__(self, client: SupabaseClient):
        self.client = client

    def slug_for(self, account_id: str) -> Optional[str]:
        """Stored role slug for the account's profile, or None."""
        try:
            profile = self.client.select_one(
                "profiles",
                columns="role_id,roles:roles(slug)",
                filters={"id": eq(account_id)},
            )
        except SupabaseError as e:
            logger.warning("Role lookup failed for %s: %s", account_id, e.message)
            return None
        if not profile:
            return None
        role = profile.get("roles") or {}
        return role.get("slug") or None

    def resolve(self, account_id: str) -> Optional[str]:
        """Canonical role for the account, or None."""
        return normalize_role(self.slug_for(account_id))


# ── FastAPI dependencies ───────────────────────────────────────────

def require_auth(request: Request) -> Account:
    validator: TokenValidator = request.app.state.token_validator
    account = validator.validate(request.headers.get("authorization"))
    request.state.account = account
    return account


def _resolve_role(request: Request, account: Account) -> Optional[str]:
    resolver: RoleResolver = request.app.state.role_resolver
    role = resolver.resolve(account.id)
    request.state.role = role
    return role


def require_admin(request: Request, account: Account = Depends(require_auth)) -> Account:
    if _resolve_role(request, account) != ADMIN:
        logger.info("Forbidden admin access for %s", account.id)
        raise Forbidden("Forbidden.")
    return account


def require_role(*allowed: str):
    """Guard factory: the account's canonical role must be one of `allowed`."""
    allowed_roles = canonical_set(allowed)

    def dependency(request: Request, account: Account = Depends(require_auth)) -> Account:
        role = _resolve_role(request, account)
        if not role or role not in allowed_roles:
            logger.info("Forbidden role %s for %s (allowed: %s)", role, account.id, sorted(allowed_roles))
            raise Forbidden("Forbidden.")
        return account

    return dependency
