from typing import Any, Dict, Optional


class LabGuardError(Exception):
    """Base error rendered as {"error": message, **extra}"""

    status_code = 400

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class Unauthenticated(LabGuardError):
    """Missing, malformed or unresolvable bearer credential"""
    status_code = 401


class Forbidden(LabGuardError):
    """Valid credential, insufficient role"""
    status_code = 403


class InvalidInput(LabGuardError):
    """Missing or malformed request fields"""
    status_code = 400


class MissingFields(InvalidInput):
    pass


class UpstreamFailure(LabGuardError):
    """Supabase call failed; message passed through verbatim"""
    status_code = 400


class SampleNotFound(LabGuardError):
    status_code = 404


class InvalidTransition(LabGuardError):
    """Sample is not in the state the requested transition starts from"""
    status_code = 409
