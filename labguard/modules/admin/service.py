import logging
from typing import Any, Dict, List, Optional

from labguard.exceptions import InvalidInput, MissingFields, UpstreamFailure
from labguard.roles import slugify
from labguard.supabase import SupabaseClient, SupabaseError, eq, in_

logger = logging.getLogger(__name__)

ROLE_COLUMNS = "id,name,slug,description"
USER_LIST_COLUMNS = "id,full_name,email,role_id,active,roles:roles(slug,name)"


class AdminService:
    """Users, roles and profile lookups. Thin wrappers over Supabase."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    # ── roles ──────────────────────────────────────────────────────

    def _role_by(self, column: str, value: str) -> Optional[Dict[str, Any]]:
        try:
            return self.client.select_one("roles", columns=ROLE_COLUMNS, filters={column: eq(value)})
        except SupabaseError as e:
            logger.warning("Role lookup by %s=%s failed: %s", column, value, e.message)
            return None

    def list_roles(self) -> List[Dict[str, Any]]:
        try:
            return self.client.select("roles", columns=ROLE_COLUMNS, order="name.asc")
        except SupabaseError as e:
            raise UpstreamFailure(e.message)

    def create_role(self, name: Optional[str], description: Optional[str], slug: Optional[str]) -> Dict[str, Any]:
        name = (name or "").strip()
        description = (description or "").strip()
        role_slug = slugify(slug) if slug else slugify(name)

        if not name or not description or not role_slug:
            raise MissingFields("Missing role fields.")
        if self._role_by("slug", role_slug):
            raise InvalidInput("Role slug already exists.", {"slug": role_slug})

        try:
            rows = self.client.insert(
                "roles",
                {"name": name, "slug": role_slug, "description": description},
                columns=ROLE_COLUMNS,
            )
        except SupabaseError as e:
            raise UpstreamFailure(e.message)
        if not rows:
            raise UpstreamFailure("Role was not created.")
        return rows[0]

    def update_role(self, role_id: str, name: Optional[str], description: Optional[str]) -> Dict[str, Any]:
        updates = {}
        if name and name.strip():
            updates["name"] = name.strip()
        if description and description.strip():
            updates["description"] = description.strip()
        if not updates:
            raise MissingFields("Missing updates.")

        try:
            rows = self.client.update("roles", updates, filters={"id": eq(role_id)}, columns=ROLE_COLUMNS)
        except SupabaseError as e:
            raise UpstreamFailure(e.message)
        if not rows:
            raise InvalidInput("Invalid role id.")
        return rows[0]

    def delete_role(self, role_id: str) -> None:
        try:
            in_use = self.client.select("profiles", columns="id", filters={"role_id": eq(role_id)}, limit=1)
        except SupabaseError as e:
            raise UpstreamFailure(e.message)
        if in_use:
            raise InvalidInput("Role is assigned to users.")

        try:
            self.client.delete("roles", filters={"id": eq(role_id)})
        except SupabaseError as e:
            raise UpstreamFailure(e.message)

    # ── users ──────────────────────────────────────────────────────

    def create_user(
        self,
        email: Optional[str],
        password: Optional[str],
        full_name: Optional[str],
        role_id: Optional[str] = None,
        role_slug: Optional[str] = None,
    ) -> str:
        if not email or not password or not full_name:
            raise MissingFields("Missing fields.")

        if not role_id and role_slug:
            found = self._role_by("slug", role_slug)
            role_id = found["id"] if found else None
        if not role_id:
            raise MissingFields("Missing role_id.")

        role = self._role_by("id", role_id)
        if not role:
            raise InvalidInput("Invalid role_id.")

        try:
            user = self.client.create_user(email, password, {"full_name": full_name})
        except SupabaseError as e:
            raise UpstreamFailure(e.message or "Failed to create user.")

        user_id = str(user["id"])
        try:
            self.client.insert(
                "profiles",
                {
                    "id": user_id,
                    "full_name": full_name,
                    "email": email,
                    "role_id": role["id"],
                    "role": role["slug"],
                    "active": True,
                },
                upsert=True,
            )
        except SupabaseError as e:
            logger.error("Profile upsert failed for new user %s: %s", user_id, e.message)
            raise UpstreamFailure(e.message)

        logger.info("Usuario %s creado con rol %s", user_id, role["slug"])
        return user_id

    def list_users(self) -> List[Dict[str, Any]]:
        try:
            return self.client.select("profiles", columns=USER_LIST_COLUMNS, order="created_at.desc")
        except SupabaseError as e:
            raise UpstreamFailure(e.message)

    def assign_role(self, user_id: str, role_id: Optional[str]) -> None:
        if not role_id:
            raise MissingFields("Missing role_id.")
        role = self._role_by("id", role_id)
        if not role:
            raise InvalidInput("Invalid role_id.")
        try:
            self.client.update(
                "profiles",
                {"role_id": role["id"], "role": role["slug"]},
                filters={"id": eq(user_id)},
            )
        except SupabaseError as e:
            raise UpstreamFailure(e.message)

    def set_active(self, user_id: str, active: Optional[bool]) -> None:
        if active is None:
            raise MissingFields("Missing active.")
        try:
            self.client.update("profiles", {"active": active}, filters={"id": eq(user_id)})
        except SupabaseError as e:
            raise UpstreamFailure(e.message)

    # ── profiles ───────────────────────────────────────────────────

    def lookup_profiles(self, ids_param: Optional[str]) -> List[Dict[str, Any]]:
        ids = [v.strip() for v in (ids_param or "").split(",") if v.strip()]
        if not ids:
            raise MissingFields("Missing ids param")
        try:
            return self.client.select("profiles", columns="id,full_name,email", filters={"id": in_(ids)})
        except SupabaseError as e:
            logger.warning("profiles lookup error ids=%s: %s (%s)", ids, e.message, e.details)
            return []
