import json
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from constants import SPOTIFY_SCOPES

CONFIG_PATH = "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify Web API (Authorization Code, confidential client)
    "spotify_client_id": "",
    "spotify_client_secret": "",
    "spotify_redirect_uri": "http://127.0.0.1:3001/auth/callback",
    "spotify_scopes": list(SPOTIFY_SCOPES),

    # Persistence
    "tokens_path": "data/tokens.json",
    "schedule_path": "data/schedule.json",

    # Scheduler
    "schedule_timezone": "America/Sao_Paulo",
    "scheduler_tick_seconds": 1.0,

    # Upstream client
    "token_expiry_margin": 60,
    "http_timeout": 30.0,
    "bulk_chunk_size": 100,
    "bulk_chunk_delay": 0.04,
    "default_market": "BR",

    # AI playlist generation (optional)
    "openai_api_key": "",
    "openai_model": "gpt-4o-mini",

    # HTTP server
    "server_host": "0.0.0.0",
    "server_port": 3001,
    "cors_origin": "",

    # Logging
    "log_level": "INFO",
    "log_file": "",
}

# Environment variables that override config.json (after .env is loaded).
ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": "spotify_client_id",
    "SPOTIFY_CLIENT_SECRET": "spotify_client_secret",
    "SPOTIFY_REDIRECT_URI": "spotify_redirect_uri",
    "TOKENS_PATH": "tokens_path",
    "SCHEDULE_PATH": "schedule_path",
    "SCHEDULE_TZ": "schedule_timezone",
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_MODEL": "openai_model",
    "CORS_ORIGIN": "cors_origin",
    "PORT": "server_port",
    "LOG_LEVEL": "log_level",
}

SECRET_KEYS = ("spotify_client_secret", "openai_api_key")

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": False},
    "spotify_client_secret": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},

    "tokens_path": {"type": str, "required": True},
    "schedule_path": {"type": str, "required": True},

    "schedule_timezone": {"type": str, "required": True},
    "scheduler_tick_seconds": {"type": (int, float), "required": False, "min": 0.1, "max": 60},

    "token_expiry_margin": {"type": int, "required": False, "min": 0, "max": 600},
    "http_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},
    "bulk_chunk_size": {"type": int, "required": False, "min": 1, "max": 100},
    "bulk_chunk_delay": {"type": (int, float), "required": False, "min": 0, "max": 10},
    "default_market": {"type": str, "required": False},

    "openai_api_key": {"type": str, "required": False},
    "openai_model": {"type": str, "required": False},

    "server_host": {"type": str, "required": False},
    "server_port": {"type": int, "required": False, "min": 1, "max": 65535},
    "cors_origin": {"type": str, "required": False},

    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    "log_file": {"type": str, "required": False},
}


def _coerce_env_value(key: str, raw: str) -> Any:
    default = DEFAULT_CONFIG.get(key)
    raw = raw.strip()
    if isinstance(default, bool):
        return raw.lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            return default
    if isinstance(default, float):
        try:
            return float(raw)
        except ValueError:
            return default
    if key == "log_level":
        return raw.upper()
    return raw


def apply_env_overrides(config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Overlay non-empty environment variables onto the config dict (in place)."""
    environ = os.environ if environ is None else environ
    for env_name, key in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or not str(raw).strip():
            continue
        config[key] = _coerce_env_value(key, str(raw))
    return config


def load_config(path: str = CONFIG_PATH, *, use_env: bool = True) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields.

    A missing config file is not an error for the server: defaults plus the
    environment are enough to boot. Invalid JSON still raises.
    """
    config: Dict[str, Any] = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
        if not isinstance(config, dict):
            raise ValueError(f"Config file {path} must contain a JSON object.")

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = list(value) if isinstance(value, list) else value

    if use_env:
        load_dotenv()
        apply_env_overrides(config)

    return config


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # Type check (bool is an int subclass, never accept it for numbers)
        expected_type = rules.get("type")
        if expected_type and (not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool)):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        # List element type check (when schema uses: {"type": list, "element_type": ...})
        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        # Choices check
        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        # Range check for numeric values
        if isinstance(value, (int, float)):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def masked_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of the config safe to log: secrets reduced to OK / (empty)."""
    out = dict(config)
    for key in SECRET_KEYS:
        if key in out:
            out[key] = "OK" if str(out.get(key) or "").strip() else "(empty)"
    return out
