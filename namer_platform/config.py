"""
Configuration constants for the figma-namer client.
"""

import os

DEFAULT_API_URL = "http://localhost:3456"

# Vision-language model providers accepted by ``/api/name``, keyed by the
# short name the server understands. ``family`` selects which API key is used.
AVAILABLE_PROVIDERS = {
    "gemini-flash":  {"family": "google",    "label": "Gemini Flash (fast & cheap)"},
    "gemini-pro":    {"family": "google",    "label": "Gemini Pro"},
    "claude-sonnet": {"family": "anthropic", "label": "Claude Sonnet (balanced)"},
    "claude-opus":   {"family": "anthropic", "label": "Claude Opus (deepest)"},
    "gpt-5.2":       {"family": "openai",    "label": "GPT-5.2"},
}

DEFAULT_PROVIDER = "gemini-flash"

PLATFORMS = ("Auto", "iOS", "Android", "Web")
DEFAULT_PLATFORM = "Auto"

# Environment variable names for API keys, keyed by provider family
API_KEY_ENV_VARS = {
    "google":    "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openai":    "OPENAI_API_KEY",
}

API_URL_ENV = "FIGMA_NAMER_API_URL"
FIGMA_TOKEN_ENV = "FIGMA_TOKEN"

_REQUEST_TIMEOUT_ENV = "FIGMA_NAMER_REQUEST_TIMEOUT_SECONDS"
_STREAM_IDLE_TIMEOUT_ENV = "FIGMA_NAMER_STREAM_IDLE_TIMEOUT_SECONDS"
_RECONNECT_ATTEMPTS_ENV = "FIGMA_NAMER_RECONNECT_ATTEMPTS"
_RECONNECT_BACKOFF_ENV = "FIGMA_NAMER_RECONNECT_BACKOFF_SECONDS"

DEFAULT_REQUEST_TIMEOUT_SECONDS = 120.0
DEFAULT_RETRY_ATTEMPTS = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 0.25

# Batches can take a while on slow models; silence beyond this is a stall.
DEFAULT_STREAM_IDLE_TIMEOUT_SECONDS = 300.0
DEFAULT_RECONNECT_ATTEMPTS = 2
DEFAULT_RECONNECT_BACKOFF_SECONDS = 1.0


def _to_float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _to_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def request_timeout_seconds() -> float:
    return _to_float_env(_REQUEST_TIMEOUT_ENV, DEFAULT_REQUEST_TIMEOUT_SECONDS)


def stream_idle_timeout_seconds() -> float:
    return _to_float_env(_STREAM_IDLE_TIMEOUT_ENV, DEFAULT_STREAM_IDLE_TIMEOUT_SECONDS)


def reconnect_attempts() -> int:
    return _to_int_env(_RECONNECT_ATTEMPTS_ENV, DEFAULT_RECONNECT_ATTEMPTS)


def reconnect_backoff_seconds() -> float:
    return _to_float_env(_RECONNECT_BACKOFF_ENV, DEFAULT_RECONNECT_BACKOFF_SECONDS)


def resolve_provider(name: str) -> dict:
    """Resolve a provider short name to its config dict.

    Raises ValueError if name is not recognised.
    """
    if name not in AVAILABLE_PROVIDERS:
        valid = ", ".join(AVAILABLE_PROVIDERS.keys())
        raise ValueError(f"Unknown provider '{name}'. Available providers: {valid}")
    return AVAILABLE_PROVIDERS[name]


def resolve_api_url(explicit_url: str | None = None, configured_url: str | None = None) -> str:
    """Pick the server base URL: explicit, then environment, then user config, then default."""
    for candidate in (explicit_url, os.environ.get(API_URL_ENV), configured_url):
        if candidate and candidate.strip():
            return candidate.strip().rstrip("/")
    return DEFAULT_API_URL


def resolve_figma_token(explicit_token: str | None = None) -> str:
    """Get the Figma access token from the argument or ``FIGMA_TOKEN``.

    Raises ValueError if no token is found.
    """
    if explicit_token:
        return explicit_token
    token = os.environ.get(FIGMA_TOKEN_ENV, "").strip()
    if token:
        return token
    raise ValueError(f"No Figma token. Pass --token or set the {FIGMA_TOKEN_ENV} environment variable.")


def resolve_api_key(provider: str, explicit_key: str | None = None) -> str:
    """Get the model API key for a provider.

    Priority:
        1. ``explicit_key`` if provided (e.g. from CLI ``--vlm-key``).
        2. The environment variable for the provider's key family.

    Raises ValueError if no key is found.
    """
    if explicit_key:
        return explicit_key

    family = resolve_provider(provider)["family"]
    env_var = API_KEY_ENV_VARS[family]
    key = os.environ.get(env_var)
    if key:
        return key

    raise ValueError(
        f"No API key for provider '{provider}'. "
        f"Pass --vlm-key or set the {env_var} environment variable."
    )
