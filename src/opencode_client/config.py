from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

import tomli_w  # type: ignore

CONFIG_DIR = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "opencode-client"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_BASE_URL = "http://localhost:4096"


@dataclass
class ClientOptions:
    """Settings shared by the REST client and the event stream."""

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 300.0  # seconds; connect timeout only for the event stream
    default_provider_id: str = "anthropic"
    default_model_id: str = "claude-3-5-sonnet-20241022"
    # when False, failed REST calls return None/False instead of raising
    throw_on_error: bool = True

    def validate(self) -> ClientOptions:
        if not self.base_url:
            raise ValueError("base_url is required")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if not self.default_provider_id or not self.default_model_id:
            raise ValueError("default provider and model ids are required")
        return self


_DEFAULT = {
    "client": {
        "base_url": DEFAULT_BASE_URL,
        "timeout": 300.0,
        "default_provider_id": "anthropic",
        "default_model_id": "claude-3-5-sonnet-20241022",
        "throw_on_error": True,
    },
}


def _decode_options(raw: Mapping[str, object] | None) -> ClientOptions:
    options = ClientOptions()
    if not raw:
        return options
    base_url = raw.get("base_url")
    timeout = raw.get("timeout")
    provider_id = raw.get("default_provider_id")
    model_id = raw.get("default_model_id")
    throw_on_error = raw.get("throw_on_error")
    if base_url is not None:
        options.base_url = str(base_url)
    if timeout is not None:
        options.timeout = float(timeout)  # type: ignore[arg-type]
    if provider_id is not None:
        options.default_provider_id = str(provider_id)
    if model_id is not None:
        options.default_model_id = str(model_id)
    if throw_on_error is not None:
        options.throw_on_error = bool(throw_on_error)
    return options


def _encode_options(o: ClientOptions) -> dict:
    return {
        "base_url": o.base_url,
        "timeout": float(o.timeout),
        "default_provider_id": o.default_provider_id,
        "default_model_id": o.default_model_id,
        "throw_on_error": bool(o.throw_on_error),
    }


def load_options(path: Path | None = None) -> ClientOptions:
    """Load options from the config file, then apply environment overrides."""
    config_file = path or CONFIG_FILE
    data = tomllib.loads(config_file.read_text(encoding="utf-8")) if config_file.exists() else _DEFAULT
    options = _decode_options(data.get("client"))

    env_url = os.environ.get("OPENCODE_BASE_URL")
    if env_url:
        options.base_url = env_url
    env_timeout = os.environ.get("OPENCODE_TIMEOUT")
    if env_timeout:
        options.timeout = float(env_timeout)
    return options.validate()


def save_options(options: ClientOptions, path: Path | None = None) -> Path:
    config_file = path or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "wb") as f:
        tomli_w.dump({"client": _encode_options(options)}, f)
    return config_file


def save_default_options(path: Path | None = None) -> Path:
    config_file = path or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)
    if not config_file.exists():
        with open(config_file, "wb") as f:
            tomli_w.dump(_DEFAULT, f)
    return config_file
