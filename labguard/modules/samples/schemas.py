from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict


# Every field optional; required-field checks happen in the service
# and answer 400 {"error": ...}.

class SampleCreate(BaseModel):
    # phone numbers and similar often arrive as JSON numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    type: Optional[str] = None
    origin: Optional[str] = None
    transport_condition: Optional[str] = None
    storage_condition: Optional[str] = None
    business_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class AssignRequest(BaseModel):
    analyst_id: Optional[str] = None
    due_date: Optional[str] = None


class AnalysisRequest(BaseModel):
    analysis_payload: Optional[Dict[str, Any]] = None


class ValidateRequest(BaseModel):
    validation_payload: Optional[Dict[str, Any]] = None
    certification_status: Optional[str] = None
