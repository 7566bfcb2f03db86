from notebook_agent import main as server_main
from notebook_agent.settings import get_settings


def test_flags_override_settings(monkeypatch):
    monkeypatch.setenv("NOTEBOOK_AGENT_PORT", "9100")
    get_settings.cache_clear()
    calls = []
    monkeypatch.setattr(server_main.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    try:
        server_main.main(["--host", "127.0.0.1"])
    finally:
        get_settings.cache_clear()

    assert calls == [("notebook_agent.app:app", {"host": "127.0.0.1", "port": 9100, "reload": False})]
