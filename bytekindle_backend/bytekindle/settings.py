import os
from dotenv import load_dotenv
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Load .env file if it exists (for local development)
env_path = os.path.join(os.path.dirname(__file__), "..", ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)
    logger.info("Loaded .env file for local development")
else:
    logger.info("No .env file found, using environment variables")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
REPLICATE_API_TOKEN = os.getenv("REPLICATE_API_TOKEN", "")
REPLICATE_MODEL_VERSION = os.getenv("REPLICATE_MODEL_VERSION", "")

REPLICATE_POLL_INTERVAL_MS = int(os.getenv("REPLICATE_POLL_INTERVAL_MS", "1500"))
REPLICATE_POLL_TIMEOUT_S = int(os.getenv("REPLICATE_POLL_TIMEOUT_S", "120"))

# Vercel KV / Upstash REST endpoint; without it sessions live in process memory
KV_REST_API_URL = os.getenv("KV_REST_API_URL", "").strip()
KV_REST_API_TOKEN = os.getenv("KV_REST_API_TOKEN", "").strip()

# Story sessions expire a week after their last write
STORY_TTL_SECONDS = int(os.getenv("STORY_TTL_SECONDS", "604800"))

# Key namespaces. Bump the story prefix whenever the stored record shape changes.
STORY_KEY_PREFIX = "bk_v2_"
STARTED_KEY_PREFIX = "bk_started_v1_"

FALLBACK_SCENE = "The hero sets out on a quiet walk and discovers something new."
FALLBACK_SCENE_COUNT = 5

DEFAULT_BIRTH_MONTH = os.getenv("DEFAULT_BIRTH_MONTH", "2024-03")

# Kindle 7th gen renders 600px wide
IMAGE_SIZE = int(os.getenv("IMAGE_SIZE", "600"))

# Serve deterministic stub stories/images instead of calling the model APIs
OFFLINE = os.getenv("BYTEKINDLE_OFFLINE", "") == "1"

_allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "").strip()
if _allowed_origins_env:
    ALLOWED_ORIGINS = [o.strip() for o in _allowed_origins_env.split(",") if o.strip()]
else:
    ALLOWED_ORIGINS = ["*"]

def has_all_keys() -> bool:
    keys_present = all([OPENAI_API_KEY, REPLICATE_API_TOKEN])
    if not keys_present:
        missing = []
        if not OPENAI_API_KEY: missing.append("OPENAI_API_KEY")
        if not REPLICATE_API_TOKEN: missing.append("REPLICATE_API_TOKEN")
        logger.warning(f"Missing API keys: {', '.join(missing)}")
    return keys_present
