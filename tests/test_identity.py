from labguard.supabase import SupabaseError


def test_me_reports_canonical_role(client, headers_for):
    data = client.get("/api/me", headers=headers_for("eval-1")).json()["data"]
    assert data["id"] == "eval-1"
    assert data["role_slug"] == "evaluador"
    assert data["role"] == "evaluator"
    assert data["active"] is True


def test_me_for_account_without_role(client, headers_for):
    data = client.get("/api/me", headers=headers_for("pending-1")).json()["data"]
    assert data["role"] is None
    assert data["role_slug"] is None
    assert data["full_name"] == "Pedro Pendiente"


def test_me_falls_back_to_account_when_profile_fails(client, fake, headers_for):
    fake.fail("select", "profiles")
    data = client.get("/api/me", headers=headers_for("admin-1")).json()["data"]
    assert data["email"] == "admin-1@lab.test"
    assert data["full_name"] == "Ana Admin"
    assert data["role"] is None
    assert data["active"] is False


# ── analysts ───────────────────────────────────────────────────────

def test_analysts_include_both_slugs(client, fake, headers_for):
    fake.add_account("analyst-off", "Olga Inactiva", "analista", active=False)
    data = client.get("/api/analysts", headers=headers_for("recep-1")).json()["data"]
    assert [a["id"] for a in data] == ["analyst-en", "analyst-1"]


def test_analysts_fall_back_to_roles_join(client, fake, headers_for):
    original_select = fake.select
    calls = []

    def missing_role_column(table, columns="*", filters=None, order=None, limit=None):
        if table == "profiles" and "role" in (filters or {}):
            calls.append(columns)
            raise SupabaseError("column profiles.role does not exist")
        return original_select(table, columns=columns, filters=filters, order=order, limit=limit)

    fake.select = missing_role_column
    resp = client.get("/api/analysts", headers=headers_for("eval-1"))
    assert resp.status_code == 200
    assert sorted(a["id"] for a in resp.json()["data"]) == ["analyst-1", "analyst-en"]
    assert len(calls) == 1


def test_analysts_fallback_failure_is_400(client, fake, headers_for):
    original_select = fake.select

    def broken(table, columns="*", filters=None, order=None, limit=None):
        if table == "profiles" and "active" in (filters or {}):
            raise SupabaseError("permission denied for table profiles")
        return original_select(table, columns=columns, filters=filters, order=order, limit=limit)

    fake.select = broken
    resp = client.get("/api/analysts", headers=headers_for("eval-1"))
    assert resp.status_code == 400
    assert resp.json() == {"error": "permission denied for table profiles"}


def test_health_probes_auth(client):
    resp = client.get("/health")
    assert resp.json() == {"status": "ok", "service": "labguard-api", "auth": True}
