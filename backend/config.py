import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def env_number(name, default, cast=float):
    """Read a numeric setting, keeping the default when the value is malformed."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "claude-sonnet-4-5")
LLM_TIMEOUT_SECONDS = env_number("LLM_TIMEOUT_SECONDS", 15.0)
LLM_MAX_TOKENS = env_number("LLM_MAX_TOKENS", 1024, int)

# Set USE_LLM=0 for fully offline, deterministic parsing
USE_LLM = os.getenv("USE_LLM", "1") == "1"

# Ask the LLM to split multi-command transcripts in one call instead of per fragment
LLM_BATCH_MODE = os.getenv("LLM_BATCH_MODE", "0") == "1"

# "pm_bias": hours 1-7 without am/pm are read as afternoon/evening
# "strict": ambiguous 12-hour clock values are left unresolved
AMBIGUOUS_HOUR_POLICY = os.getenv("AMBIGUOUS_HOUR_POLICY", "pm_bias").strip().lower()
if AMBIGUOUS_HOUR_POLICY not in ("pm_bias", "strict"):
    AMBIGUOUS_HOUR_POLICY = "pm_bias"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]


def llm_configured() -> bool:
    """True when an API key is present and not the placeholder from .env.example."""
    return bool(ANTHROPIC_API_KEY) and ANTHROPIC_API_KEY != "your-api-key-here"
