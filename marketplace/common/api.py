from typing import Any, Dict, Optional

from marketplace.common.errors import MarketplaceError


SCHEMA_VERSION = "v1"

ERROR_STATUS = {
    "VALIDATION_ERROR": 400,
    "NOT_FOUND": 404,
    "SERVICE_UNAVAILABLE": 503,
}


def ok_response(data: Dict[str, Any]) -> Dict[str, Any]:
    return {"schema_version": SCHEMA_VERSION, "status": "ok", "data": data}


def error_response(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "status": "error",
        "error": {"code": code, "message": message, "details": details or {}},
    }


def marketplace_error_response(exc: MarketplaceError) -> Dict[str, Any]:
    return error_response(exc.code, str(exc), exc.details)


def status_for(code: str) -> int:
    return ERROR_STATUS.get(code, 500)
