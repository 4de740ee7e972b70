import pytest

from marketplace.common.local_bind import LocalBindError, bind_address, ensure_local_bind
from marketplace.search import main


def test_local_binding_accepts_localhost():
    ensure_local_bind("127.0.0.1")
    ensure_local_bind("localhost")
    ensure_local_bind("::1")


def test_local_binding_rejects_non_local():
    with pytest.raises(LocalBindError):
        ensure_local_bind("0.0.0.0")


def test_bind_address_reads_environment(monkeypatch):
    monkeypatch.delenv("MARKETPLACE_HOST", raising=False)
    monkeypatch.delenv("MARKETPLACE_PORT", raising=False)
    assert bind_address(8010) == ("127.0.0.1", 8010)
    monkeypatch.setenv("MARKETPLACE_HOST", "localhost")
    monkeypatch.setenv("MARKETPLACE_PORT", "9100")
    assert bind_address(8010) == ("localhost", 9100)
    monkeypatch.setenv("MARKETPLACE_HOST", "10.0.0.5")
    with pytest.raises(LocalBindError):
        bind_address(8010)


def test_search_server_refuses_public_host(monkeypatch):
    monkeypatch.delenv("MARKETPLACE_HOST", raising=False)
    monkeypatch.delenv("MARKETPLACE_PORT", raising=False)
    calls = []
    monkeypatch.setattr(main.uvicorn, "run", lambda *args, **kwargs: calls.append(kwargs))
    with pytest.raises(LocalBindError):
        main.run(host="0.0.0.0")
    main.run(host="127.0.0.1", port=9000)
    main.run()
    assert calls == [{"host": "127.0.0.1", "port": 9000}, {"host": "127.0.0.1", "port": 8010}]
