import base64
import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from labguard.auth import RoleResolver, TokenValidator, peek_claims
from labguard.exceptions import Unauthenticated

GUARDED = [
    ("get", "/api/samples", None),
    ("post", "/api/samples", {}),
    ("get", "/api/analysts", None),
    ("get", "/api/me", None),
    ("get", "/api/admin/users", None),
    ("get", "/api/admin/roles", None),
    ("post", "/api/samples/any-id/assign", {}),
    ("post", "/api/samples/any-id/analysis", {}),
    ("post", "/api/samples/any-id/validate", {}),
]


def _call(client, method, path, body, headers):
    if body is None:
        return getattr(client, method)(path, headers=headers)
    return getattr(client, method)(path, json=body, headers=headers)


@pytest.mark.parametrize("method,path,body", GUARDED)
def test_foreign_issuer_is_rejected_everywhere(client, make_token, method, path, body):
    token = make_token(sub="admin-1", iss="https://other-project.supabase.co/auth/v1")
    resp = _call(client, method, path, body, {"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid session."


@pytest.mark.parametrize("method,path,body", GUARDED)
@pytest.mark.parametrize("header", [None, "", "Token abc.def.ghi", "bearer abc.def.ghi", "Basic YWRtaW4="])
def test_missing_bearer_prefix_never_decodes(client, fake, method, path, body, header):
    headers = {"Authorization": header} if header is not None else {}
    resp = _call(client, method, path, body, headers)
    assert resp.status_code == 401
    assert resp.json()["error"] == "Missing bearer token."
    assert ("auth", "users") not in fake.calls


@pytest.mark.parametrize("token", ["garbage", "a.b.c", "only.two", "x." + base64.urlsafe_b64encode(b"not json").decode() + ".sig"])
def test_malformed_token_is_unauthenticated(client, token):
    resp = client.get("/api/samples", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_token_without_subject(client, make_token, fake):
    resp = client.get("/api/samples", headers={"Authorization": f"Bearer {make_token(sub=None)}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token claims invalid."
    assert ("auth", "users") not in fake.calls


def test_unknown_account_is_unauthenticated(client, headers_for):
    resp = client.get("/api/samples", headers=headers_for("ghost"))
    assert resp.status_code == 401


def test_account_lookup_error_is_unauthenticated(client, fake, headers_for):
    fake.fail("auth", "users", "upstream down")
    resp = client.get("/api/samples", headers=headers_for("admin-1"))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "upstream down"


def test_peek_claims_ignores_signature(settings):
    header = base64.urlsafe_b64encode(json.dumps({"alg": "HS256", "typ": "JWT"}).encode()).rstrip(b"=").decode()
    payload = base64.urlsafe_b64encode(
        json.dumps({"sub": "u-1", "iss": settings.expected_issuer}).encode()
    ).rstrip(b"=").decode()
    claims = peek_claims(f"{header}.{payload}.bogus-signature")
    assert claims["sub"] == "u-1"


def _segment(data) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


@pytest.mark.parametrize("signature", ["bogus-signature!", "", "a"])
def test_peek_claims_never_reads_signature(signature):
    token = ".".join([_segment({"alg": "HS256"}), _segment({"sub": "u-2"}), signature])
    assert peek_claims(token)["sub"] == "u-2"


@pytest.mark.parametrize("payload", [[1, 2], "sub", 42])
def test_peek_claims_requires_object_payload(payload):
    with pytest.raises(Unauthenticated):
        peek_claims(".".join([_segment({"alg": "HS256"}), _segment(payload), "sig"]))


def test_expired_token_is_unauthenticated(client, make_token):
    expired = datetime.now(timezone.utc) - timedelta(days=1)
    token = make_token(sub="admin-1", exp=expired)
    resp = client.get("/api/admin/users", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid session."


def test_token_signed_with_other_key_is_unauthenticated(client, settings):
    token = jwt.encode(
        {"sub": "admin-1", "iss": settings.expected_issuer, "role": "authenticated"},
        "someone-elses-secret-0123456789abcdefgh",
        algorithm="HS256",
    )
    resp = client.get("/api/admin/users", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_token_subject_must_match_resolved_account(fake, settings, make_token):
    fake.get_user = lambda access_token: {"id": "eval-1", "email": "eval-1@lab.test"}
    validator = TokenValidator(fake, settings.expected_issuer)
    with pytest.raises(Unauthenticated) as excinfo:
        validator.validate(f"Bearer {make_token(sub='admin-1')}")
    assert excinfo.value.extra == {"detail": "Token subject mismatch."}


def test_validator_returns_resolved_account(fake, settings, make_token):
    validator = TokenValidator(fake, settings.expected_issuer)
    account = validator.validate(f"Bearer {make_token(sub='eval-1')}")
    assert account.id == "eval-1"
    assert account.full_name == "Eva Evaluadora"


def test_validator_requires_exact_issuer(fake, settings, make_token):
    validator = TokenValidator(fake, settings.expected_issuer)
    with pytest.raises(Unauthenticated):
        validator.validate(f"Bearer {make_token(iss=settings.expected_issuer + '/')}")


# ── Role Resolver ──────────────────────────────────────────────────

@pytest.mark.parametrize(
    "account_id,expected",
    [
        ("admin-1", "admin"),
        ("recep-1", "recepcion"),
        ("analyst-1", "analyst"),
        ("analyst-en", "analyst"),
        ("eval-1", "evaluator"),
        ("eval-2", "evaluator"),
        ("pending-1", None),
        ("nobody", None),
    ],
)
def test_role_resolver_normalizes(fake, account_id, expected):
    assert RoleResolver(fake).resolve(account_id) == expected


def test_role_resolver_returns_none_on_lookup_error(fake):
    fake.fail("select", "profiles")
    assert RoleResolver(fake).slug_for("admin-1") is None


# ── Guards ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("user_id", ["recep-1", "analyst-1", "eval-1", "pending-1"])
def test_admin_only_forbids_other_roles(client, headers_for, user_id):
    resp = client.get("/api/admin/users", headers=headers_for(user_id))
    assert resp.status_code == 403
    assert resp.json() == {"error": "Forbidden."}


def test_admin_only_allows_admin(client, headers_for):
    assert client.get("/api/admin/users", headers=headers_for("admin-1")).status_code == 200


@pytest.mark.parametrize("user_id", ["recep-1", "analyst-1", "eval-1", "pending-1"])
def test_any_authenticated_allows_every_account(client, headers_for, user_id):
    assert client.get("/api/samples", headers=headers_for(user_id)).status_code == 200


@pytest.mark.parametrize("user_id", ["eval-1", "eval-2", "admin-1"])
def test_evaluator_synonyms_pass_assign_guard(client, fake, headers_for, user_id):
    sample = fake.add_sample()
    resp = client.post(
        f"/api/samples/{sample['id']}/assign",
        json={"analyst_id": "analyst-1", "due_date": "2026-02-01"},
        headers=headers_for(user_id),
    )
    assert resp.status_code == 200, resp.text


@pytest.mark.parametrize("user_id", ["recep-1", "analyst-1", "pending-1"])
def test_assign_guard_forbids_non_evaluators(client, fake, headers_for, user_id):
    sample = fake.add_sample()
    resp = client.post(
        f"/api/samples/{sample['id']}/assign",
        json={"analyst_id": "analyst-1", "due_date": "2026-02-01"},
        headers=headers_for(user_id),
    )
    assert resp.status_code == 403
    assert fake.sample(sample["id"])["status"] == "por_asignar"


@pytest.mark.parametrize("user_id", ["eval-1", "recep-1"])
def test_analysis_guard_forbids_non_analysts(client, fake, headers_for, user_id):
    sample = fake.add_sample(status="esperando_analisis")
    resp = client.post(
        f"/api/samples/{sample['id']}/analysis",
        json={"analysis_payload": {"results": []}},
        headers=headers_for(user_id),
    )
    assert resp.status_code == 403
