import json
import os
from typing import Any, Dict

CONFIG_PATH = "config.json"

TIME_RANGES = ["short_term", "medium_term", "long_term"]

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify Web API (Authorization Code with client secret)
    "spotify_client_id": "",
    "spotify_client_secret": "",
    "spotify_redirect_uri": "http://127.0.0.1:8888/callback",
    "spotify_scopes": [
        "user-read-private",
        "user-read-email",
        "user-top-read",
        "user-read-recently-played",
    ],
    "spotify_cache_tokens": True,
    "spotify_token_cache_path": "data/spotify_session.json",
    # Renew this many seconds before the access token actually expires.
    "spotify_token_skew_seconds": 60,
    "spotify_http_timeout": 30,
    "spotify_accounts_base_url": "https://accounts.spotify.com",
    "spotify_api_base_url": "https://api.spotify.com",

    # Browsing defaults
    "default_time_range": "medium_term",
    "default_limit": 20,

    "log_level": "INFO",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": True},
    "spotify_client_secret": {"type": str, "required": True},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "spotify_cache_tokens": {"type": bool, "required": False},
    "spotify_token_cache_path": {"type": str, "required": False},
    "spotify_token_skew_seconds": {"type": (int, float), "required": False, "min": 0, "max": 600},
    "spotify_http_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},
    "spotify_accounts_base_url": {"type": str, "required": False},
    "spotify_api_base_url": {"type": str, "required": False},

    "default_time_range": {"type": str, "required": False, "choices": TIME_RANGES},
    "default_limit": {"type": int, "required": False, "min": 1, "max": 50},

    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
}


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file {path} not found.")

    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def save_config(config: Dict[str, Any], path: str = CONFIG_PATH) -> bool:
    """Save configuration to file."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}") from e


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

        # Type check (bool is an int subclass; don't let it pass as a number)
        expected_type = rules.get("type")
        is_bool_as_number = isinstance(value, bool) and expected_type is not bool
        if expected_type and (is_bool_as_number or not isinstance(value, expected_type)):
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
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def write_default_config(path: str = CONFIG_PATH) -> bool:
    """Create a config file with default values if none exists yet."""
    if os.path.exists(path):
        return False
    return save_config(DEFAULT_CONFIG.copy(), path)
