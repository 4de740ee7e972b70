from __future__ import annotations

import json
import socket
from http.client import HTTPException
from typing import Any, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from marketplace.common.errors import ExternalServiceUnavailable


class JsonHttpTransport:
    """Small JSON-over-HTTP client; every transport failure surfaces as ``ExternalServiceUnavailable``."""

    def __init__(
        self,
        *,
        service: str,
        timeout_s: float = 10.0,
        default_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self._service = service
        self._timeout_s = timeout_s
        self._default_headers = dict(default_headers or {})

    @property
    def service(self) -> str:
        return self._service

    def request(
        self,
        *,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        if params:
            url = f"{url}?{urlencode(params)}"
        data = None
        merged_headers = dict(self._default_headers)
        merged_headers.update(headers or {})
        if json_body is not None:
            data = json.dumps(json_body).encode("utf-8")
            merged_headers["Content-Type"] = "application/json"
        request = Request(url, data=data, headers=merged_headers, method=method)
        try:
            with urlopen(request, timeout=self._timeout_s) as response:  # nosec B310 - configured service URLs only
                payload = response.read()
        except HTTPError as exc:
            raise ExternalServiceUnavailable(
                f"{self._service} returned HTTP {exc.code}",
                service=self._service,
                details={"status": exc.code},
            ) from exc
        except (URLError, HTTPException, socket.timeout, TimeoutError, ConnectionError) as exc:
            raise ExternalServiceUnavailable(
                f"{self._service} unreachable",
                service=self._service,
                details={"reason": str(exc)},
            ) from exc
        if not payload:
            return {}
        try:
            return json.loads(payload)
        except ValueError as exc:
            raise ExternalServiceUnavailable(
                f"{self._service} returned invalid JSON",
                service=self._service,
            ) from exc
