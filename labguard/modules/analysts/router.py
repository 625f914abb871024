"""
Active analysts available for assignment.

Profiles carry the role slug twice: denormalized in `profiles.role` and
through `profiles.role_id -> roles`. The denormalized column is queried
first; the join is the fallback for projects where that column is missing.
"""

import logging

from fastapi import APIRouter, Depends, Request

from labguard.auth import Account, require_auth
from labguard.exceptions import UpstreamFailure
from labguard.roles import ANALYST, synonyms_of
from labguard.supabase import SupabaseError, eq, in_

router = APIRouter(prefix="/api/analysts", tags=["Analistas"])
logger = logging.getLogger(__name__)


@router.get("")
def listar_analistas(request: Request, account: Account = Depends(require_auth)):
    client = request.app.state.supabase
    slugs = sorted(synonyms_of(ANALYST))

    try:
        data = client.select(
            "profiles",
            columns="id,full_name,role,active",
            filters={"role": in_(slugs), "active": eq(True)},
            order="full_name.asc",
        )
        return {"data": data}
    except SupabaseError as e:
        logger.error("list analysts failed (role column), falling back to roles join: %s", e.message)

    try:
        data = client.select(
            "profiles",
            columns="id,full_name,active,roles!inner(slug)",
            filters={"roles.slug": in_(slugs), "active": eq(True)},
            order="full_name.asc",
        )
    except SupabaseError as e:
        logger.error("list analysts fallback failed: %s", e.message)
        raise UpstreamFailure(e.message)
    return {"data": data}
