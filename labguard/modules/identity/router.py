import logging

from fastapi import APIRouter, Depends, Request

from labguard.auth import Account, require_auth
from labguard.roles import normalize_role
from labguard.supabase import SupabaseError, eq

router = APIRouter(prefix="/api", tags=["Sesión"])
logger = logging.getLogger(__name__)


@router.get("/me")
def perfil_actual(request: Request, account: Account = Depends(require_auth)):
    """
    Perfil de la cuenta autenticada con su rol normalizado.
    role = None significa cuenta pendiente de aprobación.
    """
    profile = None
    try:
        profile = request.app.state.supabase.select_one(
            "profiles",
            columns="id,full_name,email,active,role_id,roles:roles(slug,name)",
            filters={"id": eq(account.id)},
        )
    except SupabaseError as e:
        logger.warning("Profile load failed for %s: %s", account.id, e.message)

    profile = profile or {}
    role = profile.get("roles") or {}
    role_slug = role.get("slug")
    return {
        "data": {
            "id": account.id,
            "email": profile.get("email") or account.email,
            "full_name": profile.get("full_name") or account.full_name or account.email,
            "role_slug": role_slug,
            "role_name": role.get("name"),
            "role": normalize_role(role_slug),
            "active": profile.get("active", False) if profile else False,
        }
    }
