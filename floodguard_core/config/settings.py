# =============================================================================
# floodguard_core/config/settings.py
# Remote / Local Settings for FloodGuard
# =============================================================================
"""
Settings loading for the sync engine.

Sources, in order of precedence:
1. Process environment (optionally populated from a .env file)
2. The [supabase] section of .streamlit/secrets.toml (url and key only)
3. Built-in defaults

Missing remote credentials are not an error: the circuit breaker simply
starts OPEN and the engine runs local-only.

Example secrets.toml:
    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"
"""

from __future__ import annotations
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse
import logging

from dotenv import load_dotenv

from floodguard_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_SECRETS_PATH = PROJECT_ROOT / ".streamlit" / "secrets.toml"
DEFAULT_DB_PATH = PROJECT_ROOT / "local_data" / "floodguard.db"
DEFAULT_REMOTE_TABLE = "floodguard_records"
DEFAULT_REMOTE_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 3.0


@dataclass
class RemoteConfig:
    """Connection details for the hosted mirror table."""
    url: Optional[str] = None
    key: Optional[str] = None
    table: str = DEFAULT_REMOTE_TABLE
    timeout_seconds: float = DEFAULT_REMOTE_TIMEOUT

    @property
    def is_well_formed(self) -> bool:
        """True when both an http(s) URL with a host and a non-empty key are present."""
        if not self.url or not self.key or not self.key.strip():
            return False
        parsed = urlparse(self.url.strip())
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)


@dataclass
class FloodGuardSettings:
    """Everything the engine reads at startup."""
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    local_db_path: Path = DEFAULT_DB_PATH
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL
    admin_username: Optional[str] = None
    admin_password_hash: Optional[str] = None


def load_secrets_toml(secrets_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the [supabase] section from a Streamlit-style secrets.toml.

    Returns:
        Dict with whatever of url/key was found (empty if the file is missing)
    """
    secrets_path = Path(secrets_path) if secrets_path else DEFAULT_SECRETS_PATH
    if not secrets_path.exists():
        return {}

    try:
        with open(secrets_path, "rb") as f:
            secrets = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        logger.warning(f"Could not read {secrets_path}: {e}")
        return {}

    supabase = secrets.get("supabase", {})
    return {k: supabase[k] for k in ("url", "key") if k in supabase}


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number, got {raw!r}",
            config_key=name,
            expected_type="float",
        )
    if value <= 0:
        raise ConfigurationError(
            f"{name} must be positive, got {raw!r}",
            config_key=name,
            expected_type="float > 0",
        )
    return value


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    secrets_path: Optional[Path] = None,
) -> FloodGuardSettings:
    """
    Build settings from the environment and secrets file.

    Args:
        env: Mapping to read instead of os.environ (tests pass a dict)
        secrets_path: Override for the secrets.toml location

    Returns:
        FloodGuardSettings
    """
    if env is None:
        load_dotenv()
        env = os.environ

    secrets = load_secrets_toml(secrets_path)

    remote = RemoteConfig(
        url=env.get("SUPABASE_URL") or secrets.get("url"),
        key=env.get("SUPABASE_KEY") or secrets.get("key"),
        table=env.get("FLOODGUARD_REMOTE_TABLE") or DEFAULT_REMOTE_TABLE,
        timeout_seconds=_parse_float(env, "FLOODGUARD_REMOTE_TIMEOUT", DEFAULT_REMOTE_TIMEOUT),
    )

    db_path = env.get("FLOODGUARD_DB_PATH")

    settings = FloodGuardSettings(
        remote=remote,
        local_db_path=Path(db_path) if db_path else DEFAULT_DB_PATH,
        poll_interval_seconds=_parse_float(env, "FLOODGUARD_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
        admin_username=env.get("FLOODGUARD_ADMIN_USER") or None,
        admin_password_hash=env.get("FLOODGUARD_ADMIN_PASSWORD_HASH") or None,
    )

    if not remote.is_well_formed:
        logger.info("Remote mirror not configured; running local-only")

    return settings
