"""Global configuration and session state."""

from __future__ import annotations

import json
import os
import time
import uuid

from seqdx.transcript import DifferentialTracker, TurnAccumulator

BASE_DIR = os.path.join(os.path.expanduser("~"), ".seqdx")
CONFIG_FILE = os.path.join(BASE_DIR, "config.json")

URL_ENV_VAR = "SEQDX_BACKEND_URL"


class Config:
    backend_url: str = "http://localhost:8000"
    endpoint: str = "/diagnose"
    timeout: float = 300.0             # socket read timeout, seconds
    chunk_size: int = 4096             # max bytes per transport read
    debug: bool = False


config = Config()


def load_user_config() -> dict:
    """Load user config from ~/.seqdx/config.json."""
    if not os.path.isfile(CONFIG_FILE):
        return {}
    try:
        with open(CONFIG_FILE, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_user_config(data: dict):
    """Save user config to ~/.seqdx/config.json (atomic write)."""
    import tempfile
    os.makedirs(BASE_DIR, exist_ok=True)
    existing = load_user_config()
    existing.update(data)
    # Write to temp file then atomically rename to prevent data loss on crash
    fd, tmp_path = tempfile.mkstemp(dir=BASE_DIR, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(existing, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, CONFIG_FILE)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def init_config():
    """Apply saved config, then the environment override, to `config`."""
    user_cfg = load_user_config()
    url = user_cfg.get("backend_url", "")
    if url:
        config.backend_url = url
    timeout = user_cfg.get("timeout")
    if isinstance(timeout, (int, float)) and timeout > 0:
        config.timeout = float(timeout)
    chunk_size = user_cfg.get("chunk_size")
    if isinstance(chunk_size, int) and chunk_size > 0:
        config.chunk_size = chunk_size

    env_url = os.environ.get(URL_ENV_VAR, "").strip()
    if env_url:
        config.backend_url = env_url


def diagnose_url() -> str:
    return config.backend_url.rstrip("/") + config.endpoint


class SessionState:
    """Everything one diagnosis run owns: turn list, differential, last error."""

    def __init__(self):
        self.session_uuid: str = str(uuid.uuid4())
        self.turns: TurnAccumulator = TurnAccumulator()
        self.differential: DifferentialTracker = DifferentialTracker()
        self.error: str | None = None
        self.session_start_time: float = time.time()

    def reset(self):
        self.session_uuid = str(uuid.uuid4())
        self.turns.reset()
        self.differential.reset()
        self.error = None
        self.session_start_time = time.time()
