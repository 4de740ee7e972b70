from typing import Optional

import uvicorn

from marketplace.common.local_bind import bind_address, ensure_local_bind
from marketplace.search.app import app

DEFAULT_PORT = 8010


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    default_host, default_port = bind_address(DEFAULT_PORT)
    host = host or default_host
    ensure_local_bind(host)
    uvicorn.run(app, host=host, port=port or default_port)


if __name__ == "__main__":
    run()
