"""Application configuration."""

import json
import os
from pathlib import Path
from dotenv import load_dotenv

# Base paths
PACKAGE_DIR = Path(__file__).resolve().parent
BASE_DIR = PACKAGE_DIR.parent

# Load .env from project root (before any os.getenv calls)
load_dotenv(BASE_DIR / ".env")
TEMP_DIR = Path(os.getenv("TNPROP_DATA_DIR", str(BASE_DIR / "temp")))
CACHE_DIR = TEMP_DIR / "cache"
PROMPTS_DIR = PACKAGE_DIR / "prompts"

# Create directories
for d in [TEMP_DIR, CACHE_DIR]:
    d.mkdir(parents=True, exist_ok=True)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _env_bands(name: str, default: list) -> list:
    """Read a JSON list-of-lists band table from the environment."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return [tuple(band) for band in json.loads(raw)]


# LLM endpoint (OpenAI-compatible chat completions)
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")
LLM_API_KEY = os.getenv("LLM_API_KEY", "") or os.getenv("OPENAI_API_KEY", "")
if LLM_API_KEY == "your_openai_api_key_here":  # placeholder shipped in .env.example
    LLM_API_KEY = ""
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "120"))            # Per-request ceiling, seconds
LLM_MAX_OUTPUT_TOKENS = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "8000"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0"))

# Segment extractor backend name, see extractors.EXTRACTOR_BACKENDS
EXTRACTOR_BACKEND = os.getenv("EXTRACTOR_BACKEND", "llm")

# Token estimation: fixed heuristic, not a tokenizer
CHARS_PER_TOKEN = 2.5
CHUNK_DELIMITERS = ("\n\n\n", "\f", "---")  # Tried in priority order
CHUNK_MIN_FILL_RATIO = 0.7                    # Reject split points before 70% of the target size

# Documents under this estimate go to the model in one request
SINGLE_SHOT_MAX_TOKENS = int(os.getenv("SINGLE_SHOT_MAX_TOKENS", "25000"))

# (max document tokens, tokens per segment); first band whose ceiling fits wins.
CHUNK_TOKEN_BANDS = _env_bands("CHUNK_TOKEN_BANDS", [
    (50_000, 25_000),
    (150_000, 20_000),
    (400_000, 15_000),
    (None, 12_000),
])

# Hard ceiling on in-flight segment requests
MAX_CONCURRENT_SEGMENTS = int(os.getenv("MAX_CONCURRENT_SEGMENTS", "5"))
SEGMENT_MAX_RETRIES = int(os.getenv("SEGMENT_MAX_RETRIES", "3"))

# (max segment count, batch size, delay seconds between waves)
# batch size None = whole document in a single wave
SCHEDULE_BANDS = _env_bands("SCHEDULE_BANDS", [
    (5, None, 1.0),
    (15, 3, 2.0),
    (None, 2, 3.0),
])

# Progress percent window owned by the extraction phase
EXTRACT_PROGRESS_START = 20
EXTRACT_PROGRESS_END = 85

# Progress tracking
PROGRESS_TTL_SECONDS = int(os.getenv("PROGRESS_TTL_SECONDS", "300"))       # 5 min inactivity expiry
PROGRESS_SWEEP_INTERVAL = int(os.getenv("PROGRESS_SWEEP_INTERVAL", "60"))

# Result cache (content-hash keyed)
CACHE_ENABLED = _env_bool("CACHE_ENABLED", "true")
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", str(24 * 60 * 60)))

# Relational store
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{TEMP_DIR / 'transactions.db'}")
DB_ECHO = _env_bool("DB_ECHO", "false")

# Uploads
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
