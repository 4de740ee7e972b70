from __future__ import annotations

from typing import Any, Dict, List, Optional


class MarketplaceError(RuntimeError):
    def __init__(self, message: str, *, code: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ValidationError(MarketplaceError):
    """Malformed request; ``errors`` lists every violation, not just the first."""

    def __init__(self, errors: List[Dict[str, Any]], *, message: str = "Search filters are invalid") -> None:
        super().__init__(message, code="VALIDATION_ERROR", details={"errors": errors})
        self.errors = errors


class RetrievalFailure(MarketplaceError):
    def __init__(self, message: str, *, source: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="RETRIEVAL_FAILURE", details=dict(details or {}, source=source))
        self.source = source


class ExternalServiceUnavailable(MarketplaceError):
    def __init__(self, message: str, *, service: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="SERVICE_UNAVAILABLE", details=dict(details or {}, service=service))
        self.service = service


class PersistenceFailure(MarketplaceError):
    def __init__(self, message: str, *, code: str = "PERSISTENCE_FAILURE", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code=code, details=details)
