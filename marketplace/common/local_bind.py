import os
from typing import Tuple


LOCAL_HOSTS = {"127.0.0.1", "localhost", "::1"}
DEFAULT_HOST = "127.0.0.1"


class LocalBindError(ValueError):
    pass


def ensure_local_bind(host: str) -> None:
    if host not in LOCAL_HOSTS:
        raise LocalBindError(f"Marketplace services bind to loopback only; received host={host!r}")


def bind_address(default_port: int) -> Tuple[str, int]:
    """Host and port from ``MARKETPLACE_HOST`` / ``MARKETPLACE_PORT``, validated as loopback."""
    host = os.getenv("MARKETPLACE_HOST", DEFAULT_HOST)
    port = int(os.getenv("MARKETPLACE_PORT", str(default_port)))
    ensure_local_bind(host)
    return host, port
