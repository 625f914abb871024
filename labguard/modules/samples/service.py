import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from labguard.exceptions import (
    InvalidInput,
    InvalidTransition,
    MissingFields,
    SampleNotFound,
    UpstreamFailure,
)
from labguard.supabase import SupabaseClient, SupabaseError, eq, in_
from .lifecycle import (
    ANALYSIS,
    ASSIGN,
    INITIAL_STATUS,
    VALIDATE,
    CertificationStatus,
    Transition,
    check_transition,
    is_valid_status,
)

logger = logging.getLogger(__name__)

SAMPLE_COLUMNS = ",".join([
    "id", "code", "type", "origin", "transport_condition", "storage_condition",
    "business_name", "phone", "address", "status", "received_at", "created_at",
    "assigned_analyst_id", "due_date",
    "analysis_payload", "analysis_submitted_at",
    "validation_payload", "validation_submitted_at",
    "evaluated_by", "created_by", "certification_status",
])

SAMPLE_LIST_LIMIT = 200
SAMPLE_LIST_ORDER = "received_at.desc.nullsfirst,created_at.desc"

SAMPLE_TYPE_PREFIX = {
    "Agua": "AGU",
    "Alimento": "ALI",
    "Bebida alcoholica": "BEB",
}

REQUIRED_SAMPLE_FIELDS = (
    "type",
    "origin",
    "transport_condition",
    "storage_condition",
    "business_name",
    "phone",
    "address",
)

# (enrichment field, id field)
NAME_FIELDS = (
    ("updated_by_name", "updated_by"),
    ("evaluated_by_name", "evaluated_by"),
    ("assigned_analyst_name", "assigned_analyst_id"),
    ("created_by_name", "created_by"),
)

CERTIFICATION_VALUES = frozenset(c.value for c in CertificationStatus)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def sample_code(sample_type: str, sample_id: Any, today: Optional[date] = None) -> str:
    """AGU-20260115-3F2A9C: type prefix, date stamp, head of the id"""
    prefix = SAMPLE_TYPE_PREFIX.get(sample_type, "MUE")
    stamp = (today or date.today()).strftime("%Y%m%d")
    return f"{prefix}-{stamp}-{str(sample_id).replace('-', '')[:6].upper()}"


def enrich_with_names(client: SupabaseClient, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Attach *_name display fields resolved from profiles.
    Best effort: a failed lookup leaves the rows as they are.
    Existing *_name values are never overwritten.
    """
    ids = set()
    for row in rows:
        for _, id_field in NAME_FIELDS:
            if row.get(id_field):
                ids.add(str(row[id_field]))
    if not ids:
        return rows

    try:
        profiles = client.select(
            "profiles",
            columns="id,full_name,email",
            filters={"id": in_(sorted(ids))},
        )
    except SupabaseError as e:
        logger.warning("Profile enrichment failed for %s ids: %s", len(ids), e.message)
        return rows

    names = {
        str(p["id"]): p.get("full_name") or p.get("email") or str(p["id"])
        for p in profiles
        if p.get("id")
    }

    for row in rows:
        for name_field, id_field in NAME_FIELDS:
            ref = row.get(id_field)
            if not row.get(name_field) and ref and str(ref) in names:
                row[name_field] = names[str(ref)]
    return rows


class SampleService:
    """Sample registry operations and lifecycle transitions"""

    def __init__(self, client: SupabaseClient):
        self.client = client

    # ── reads ──────────────────────────────────────────────────────

    def list_samples(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        filters = {}
        if status:
            if not is_valid_status(status):
                raise InvalidInput(f"Unknown status '{status}'.")
            filters["status"] = eq(status)

        try:
            rows = self.client.select(
                "samples",
                columns=SAMPLE_COLUMNS,
                filters=filters,
                order=SAMPLE_LIST_ORDER,
                limit=SAMPLE_LIST_LIMIT,
            )
        except SupabaseError as e:
            raise UpstreamFailure(e.message)

        return enrich_with_names(self.client, list(rows))

    def get_sample(self, sample_id: str) -> Dict[str, Any]:
        try:
            sample = self.client.select_one(
                "samples", columns=SAMPLE_COLUMNS, filters={"id": eq(sample_id)}
            )
        except SupabaseError as e:
            logger.warning("Sample lookup %s failed: %s", sample_id, e.message)
            sample = None
        if not sample:
            raise SampleNotFound("Sample not found.")
        return sample

    # ── creation ───────────────────────────────────────────────────

    def create_sample(self, data: Dict[str, Any], account_id: str) -> Dict[str, Any]:
        missing = [f for f in REQUIRED_SAMPLE_FIELDS if not (data.get(f) or "").strip()]
        if missing:
            raise MissingFields("Missing required fields.", {"fields": missing})
        if data["type"] not in SAMPLE_TYPE_PREFIX:
            raise InvalidInput(
                f"Invalid sample type '{data['type']}'.",
                {"allowed": sorted(SAMPLE_TYPE_PREFIX)},
            )

        rpc_payload = {f"p_{f}": data[f].strip() for f in REQUIRED_SAMPLE_FIELDS}
        rpc_payload["p_user_id"] = account_id

        try:
            result = self.client.rpc("register_sample", rpc_payload)
        except SupabaseError as e:
            logger.error("register_sample failed: %s (%s)", e.message, e.details)
            raise UpstreamFailure(e.message)

        row = result[0] if isinstance(result, list) and result else result
        if not isinstance(row, dict) or not row.get("id"):
            raise UpstreamFailure("register_sample returned no sample.")

        return self._normalize_created(row)

    def _normalize_created(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Force the initial state onto whatever register_sample returned."""
        updates: Dict[str, Any] = {}
        if row.get("status") != INITIAL_STATUS.value:
            updates["status"] = INITIAL_STATUS.value
        if not row.get("received_at"):
            updates["received_at"] = utc_now()
        if not row.get("code"):
            updates["code"] = sample_code(row.get("type"), row["id"])

        if not updates:
            return row

        try:
            updated = self.client.update(
                "samples", updates, filters={"id": eq(row["id"])}, columns=SAMPLE_COLUMNS
            )
        except SupabaseError as e:
            logger.warning("Normalizing new sample %s failed: %s", row["id"], e.message)
            updated = []

        if updated:
            return updated[0]
        return {**row, **updates}

    # ── transitions ────────────────────────────────────────────────

    def _transition(self, transition: Transition, sample_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Single update keyed by id AND the expected source status."""
        values = {**values, "status": transition.target.value}
        try:
            rows = self.client.update(
                "samples",
                values,
                filters={"id": eq(sample_id), "status": eq(transition.source.value)},
                columns=SAMPLE_COLUMNS,
            )
        except SupabaseError as e:
            logger.error("%s failed for sample %s: %s", transition.name, sample_id, e.message)
            raise UpstreamFailure(e.message)

        if rows:
            logger.info("Sample %s -> %s", sample_id, transition.target.value)
            return rows[0]

        try:
            current = self.client.select_one(
                "samples", columns="id,status", filters={"id": eq(sample_id)}
            )
        except SupabaseError as e:
            logger.error("Re-reading sample %s after %s failed: %s", sample_id, transition.name, e.message)
            raise UpstreamFailure(e.message)
        if not current:
            raise SampleNotFound("Sample not found.")
        check_transition(transition, current.get("status"))
        # Matched the source state on re-read but the update touched nothing
        raise InvalidTransition(
            f"Sample changed while applying {transition.name}; retry.",
            {"status": current.get("status")},
        )

    def assign(self, sample_id: str, analyst_id: Optional[str], due_date: Optional[str]) -> Dict[str, Any]:
        if not analyst_id or not due_date:
            raise MissingFields("Missing analyst_id or due_date.")
        return self._transition(
            ASSIGN,
            sample_id,
            {"assigned_analyst_id": analyst_id, "due_date": due_date},
        )

    def submit_analysis(self, sample_id: str, analysis_payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if analysis_payload is None:
            raise MissingFields("Missing analysis_payload.")
        return self._transition(
            ANALYSIS,
            sample_id,
            {"analysis_payload": analysis_payload, "analysis_submitted_at": utc_now()},
        )

    def validate(
        self,
        sample_id: str,
        validation_payload: Optional[Dict[str, Any]],
        certification_status: Optional[str],
        account_id: str,
    ) -> Dict[str, Any]:
        if validation_payload is None:
            raise MissingFields("Missing validation_payload.")
        certification_status = certification_status or None
        if certification_status is not None and certification_status not in CERTIFICATION_VALUES:
            raise InvalidInput(
                f"Invalid certification_status '{certification_status}'.",
                {"allowed": sorted(CERTIFICATION_VALUES)},
            )
        return self._transition(
            VALIDATE,
            sample_id,
            {
                "validation_payload": validation_payload,
                "validation_submitted_at": utc_now(),
                "evaluated_by": account_id,
                "certification_status": certification_status,
            },
        )
