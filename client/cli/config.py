from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict

from agent.model_client import API_KEY_ENV_VAR, DEFAULT_MODEL, PERPLEXITY_API_URL, validate_api_key


def _default_config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base).expanduser().resolve() / "eyecare"
    return Path.home() / ".config" / "eyecare"


@dataclass(frozen=True)
class CLIConfig:
    api_key: str | None = None
    api_url: str = PERPLEXITY_API_URL
    model: str = DEFAULT_MODEL

    # None means wait as long as the server takes.
    timeout_s: float | None = None


def config_path() -> Path:
    return _default_config_dir() / "config.json"


def load_config() -> CLIConfig:
    path = config_path()
    if not path.exists():
        return CLIConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return CLIConfig()

    if not isinstance(data, dict):
        return CLIConfig()
    return _config_from_mapping(data)


def _config_from_mapping(data: Dict[str, Any]) -> CLIConfig:
    """Build a config from a JSON object; mistyped fields keep their defaults."""
    kwargs: Dict[str, Any] = {}
    api_key = data.get("api_key")
    if isinstance(api_key, str):
        kwargs["api_key"] = api_key
    for field in ("api_url", "model"):
        value = data.get(field)
        if isinstance(value, str) and value.strip():
            kwargs[field] = value.strip()
    timeout = data.get("timeout_s")
    # bool is an int subclass
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
        kwargs["timeout_s"] = float(timeout)
    return CLIConfig(**kwargs)


def save_config(cfg: CLIConfig) -> None:
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(asdict(cfg), indent=2, sort_keys=True)
    # New files are created 0600; existing ones are tightened after the write.
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(payload + "\n")
    os.chmod(path, 0o600)


def load_api_key() -> str | None:
    """Return the stored API key, or None when the slot is empty."""
    return (load_config().api_key or "").strip() or None


def store_api_key(api_key: str) -> None:
    save_config(replace(load_config(), api_key=api_key))


def clear_api_key() -> None:
    cfg = load_config()
    if cfg.api_key is not None:
        save_config(replace(cfg, api_key=None))


def apply_api_key_input(value: str) -> bool:
    """Store ``value`` if it is a well-formed key, otherwise clear the slot.

    Returns whether the key was accepted.
    """
    value = (value or "").strip()
    if validate_api_key(value):
        store_api_key(value)
        return True
    clear_api_key()
    return False


def mask_api_key(api_key: str | None) -> str | None:
    if not api_key:
        return None
    return api_key[:4] + "…" + api_key[-4:] if len(api_key) >= 12 else "****"


def resolve_api_key(explicit: str | None, config_key: str | None) -> str | None:
    return (
        (explicit or "").strip()
        or (config_key or "").strip()
        or (os.environ.get(API_KEY_ENV_VAR) or "").strip()
        or None
    )
