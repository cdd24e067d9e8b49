import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parent.parent
CLIENT = ROOT / "client"
SERVER = ROOT / "server"

for path in (str(CLIENT), str(SERVER)):
    if path not in sys.path:
        sys.path.insert(0, path)

import pytest


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the key store, env key and web config out of the user's home."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("PERPLEXITY_API_KEY", raising=False)
    monkeypatch.setenv("EYECARE_WEB_CONFIG", str(tmp_path / "web.yaml"))


@pytest.fixture
def valid_key():
    return "pplx-" + "a1B2c3D4e5" * 4


@pytest.fixture
def chat_completion(mocker):
    """Patch the outbound POST with a canned chat-completions response."""

    def install(content=None, *, status_code=200, payload=None):
        response = mocker.Mock()
        response.status_code = status_code
        if payload is None:
            payload = {"choices": [{"message": {"content": content}}]}
        response.json.return_value = payload
        return mocker.patch("agent.model_client.requests.post", return_value=response)

    return install
