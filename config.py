import os
import re
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value) -> float:
    """Parse "15m", "7d", "168h", "10s" or a bare number of seconds."""
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return float(amount) * _UNIT_SECONDS[unit]


MIN_SWEEP_INTERVAL = 60.0


def sweep_interval(value, allow_fast: bool = False) -> float:
    """Sweeper period in seconds; under a minute only when allow_fast is set."""
    seconds = parse_duration(value)
    if seconds <= 0:
        raise ValueError(f"SWEEP_INTERVAL must be positive, got {value!r}")
    if seconds < MIN_SWEEP_INTERVAL and not allow_fast:
        raise ValueError(
            f"SWEEP_INTERVAL must be at least {MIN_SWEEP_INTERVAL:g}s, got {value!r} "
            "(set TESTING to allow shorter periods)"
        )
    return seconds


def _get(key: str, default):
    """env.yaml value, overridden by an environment variable of the same name."""
    if key in os.environ:
        return yaml.safe_load(os.environ[key])
    return data.get(key, default)


class ApplicationConfig:
    DB_URI = _get("DB_URI", "sqlite+aiosqlite:///./test.db")
    API_PREFIX = _get("API_PREFIX", "/api")
    API_PORT = _get("API_PORT", 8000)
    API_HOST = _get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = _get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = _get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = _get("LOG_LEVEL", "INFO")
    TESTING = bool(_get("TESTING", False))

    # Tokens
    JWT_SECRET = _get("JWT_SECRET", "dev-secret-key-change-in-production")
    JWT_ALGORITHM = _get("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_TTL = parse_duration(_get("ACCESS_TOKEN_TTL", "15m"))
    REFRESH_TOKEN_TTL = parse_duration(_get("REFRESH_TOKEN_TTL", "7d"))

    # Sessions
    SESSION_TIMEOUT = parse_duration(_get("SESSION_TIMEOUT", "5m"))
    SESSION_LIFETIME = parse_duration(_get("SESSION_LIFETIME", "168h"))
    MAX_SESSIONS_PER_USER = int(_get("MAX_SESSIONS_PER_USER", 5))

    # Expiration sweeper
    SWEEPER_ENABLED = bool(_get("SWEEPER_ENABLED", True))
    SWEEP_INTERVAL = sweep_interval(_get("SWEEP_INTERVAL", "15m"), allow_fast=TESTING)
    SWEEP_BATCH_SIZE = int(_get("SWEEP_BATCH_SIZE", 100))

    # Push channel
    BROADCAST_SEND_TIMEOUT = parse_duration(_get("BROADCAST_SEND_TIMEOUT", "2s"))
    WS_AUTH_TIMEOUT = parse_duration(_get("WS_AUTH_TIMEOUT", "10s"))
    HEARTBEAT_INTERVAL = parse_duration(_get("HEARTBEAT_INTERVAL", "30s"))  # 0 disables

    # Rate limiting (single-process, in-memory counters)
    RATE_LIMIT_WINDOW = parse_duration(_get("RATE_LIMIT_WINDOW", "15m"))
    RATE_LIMIT_AUTH = int(_get("RATE_LIMIT_AUTH", 5))
    RATE_LIMIT_GENERAL = int(_get("RATE_LIMIT_GENERAL", 500))
    RATE_LIMIT_GRAPHQL = int(_get("RATE_LIMIT_GRAPHQL", 100))
    RATE_LIMIT_MUTATION = int(_get("RATE_LIMIT_MUTATION", 30))
    RATE_LIMIT_SESSION_MANAGEMENT = int(_get("RATE_LIMIT_SESSION_MANAGEMENT", 50))
