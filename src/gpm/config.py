from __future__ import annotations

import json
import os
import stat
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from platformdirs import user_config_path

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_ARCHIVE_URL = "https://github.com"
DEFAULT_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class Config:
    api_url: str = DEFAULT_API_URL
    archive_url: str = DEFAULT_ARCHIVE_URL
    token: str | None = None  # sent to api_url only; raises the host's rate limit
    timeout_s: float = DEFAULT_TIMEOUT_S
    user_agent: str | None = None  # default: gpm/<version>


def config_path(path_override: str | Path | None = None) -> Path:
    if path_override is not None:
        return Path(path_override).expanduser()
    if env := os.getenv("GPM_CONFIG_PATH"):
        return Path(env).expanduser()
    return user_config_path("gpm") / "config.json"


def _str_field(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    return value if isinstance(value, str) and value else None


def _timeout_field(raw: dict[str, Any]) -> float:
    # bool is an int subclass; "timeout_s": true is not a timeout.
    value = raw.get("timeout_s")
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return DEFAULT_TIMEOUT_S
    return float(value)


def load_config(path_override: str | Path | None = None) -> Config:
    path = config_path(path_override)
    if not path.exists():
        return Config()

    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        return Config()

    return Config(
        api_url=_str_field(raw, "api_url") or DEFAULT_API_URL,
        archive_url=_str_field(raw, "archive_url") or DEFAULT_ARCHIVE_URL,
        token=_str_field(raw, "token"),
        timeout_s=_timeout_field(raw),
        user_agent=_str_field(raw, "user_agent"),
    )


def save_config(cfg: Config, path_override: str | Path | None = None) -> Path:
    path = config_path(path_override)
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    tmp.replace(path)

    # Best-effort permissions hardening (the token lives here).
    try:
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
    except OSError:
        pass

    return path


def merge_env(base: Config) -> Config:
    """Environment overrides the config file."""
    timeout_raw = os.getenv("GPM_TIMEOUT_S")
    try:
        timeout_s = float(timeout_raw) if timeout_raw else base.timeout_s
    except ValueError:
        timeout_s = base.timeout_s
    return Config(
        api_url=os.getenv("GPM_API_URL") or base.api_url,
        archive_url=os.getenv("GPM_ARCHIVE_URL") or base.archive_url,
        token=os.getenv("GPM_TOKEN") or base.token,
        timeout_s=timeout_s,
        user_agent=base.user_agent,
    )


def redact_token(token: str | None) -> str | None:
    if not token:
        return token
    if len(token) <= 10:
        return token[:2] + "..." + token[-2:]
    return token[:6] + "..." + token[-4:]
