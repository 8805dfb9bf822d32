"""
Vercel KV (Upstash REST) integration for story session state.
Sessions have to survive across serverless invocations, so nothing is kept in process
unless KV is not configured.
"""
import time
import httpx
import logging
from typing import Dict, List, Optional, Tuple
from .settings import KV_REST_API_URL, KV_REST_API_TOKEN

logger = logging.getLogger(__name__)

class KVError(RuntimeError):
    """KV could not be reached or answered with an error."""

class KVStorage:
    def __init__(self, url: str = KV_REST_API_URL, token: str = KV_REST_API_TOKEN, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.kv_rest_api_url = url.rstrip("/")
        self.kv_rest_api_token = token
        self._transport = transport
        self.enabled = bool(self.kv_rest_api_url and self.kv_rest_api_token)
        if self.enabled:
            logger.info("KV storage enabled")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.kv_rest_api_token}",
            "Content-Type": "application/json"
        }

    async def _command(self, command: List[str]):
        async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
            response = await client.post(
                self.kv_rest_api_url,
                headers=self._headers(),
                json=command
            )
            response.raise_for_status()
            return response.json().get("result")

    async def get(self, key: str) -> Optional[str]:
        """Retrieve a raw value from KV; None means the key does not exist.

        Raises KVError when KV cannot answer, so an outage is never mistaken for a missing story.
        """
        if not self.enabled:
            return None

        try:
            result = await self._command(["GET", key])
        except Exception as e:
            logger.error(f"Failed to retrieve {key} from KV: {e}")
            raise KVError(f"KV read failed for {key}: {e}") from e

        if result is None:
            logger.info(f"{key} not found in KV")
            return None
        logger.info(f"Retrieved {key} from KV")
        return result

    async def put(self, key: str, value: str, ttl: int) -> bool:
        """Store a raw value in KV with an expiry in seconds"""
        if not self.enabled:
            return False

        try:
            await self._command(["SET", key, value, "EX", str(ttl)])
            logger.info(f"Stored {key} in KV (ttl={ttl}s)")
            return True
        except Exception as e:
            logger.error(f"Failed to store {key} in KV: {e}")
            return False

class InMemoryStorage:
    """Process-local stand-in for KV, used for local development and tests."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._items: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        item = self._items.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self._clock() >= expires_at:
            self._items.pop(key, None)
            return None
        return value

    async def put(self, key: str, value: str, ttl: int) -> bool:
        now = self._clock()
        for expired in [k for k, (_, expires_at) in self._items.items() if now >= expires_at]:
            del self._items[expired]
        self._items[key] = (value, now + ttl)
        return True

def build_store():
    kv = KVStorage()
    if kv.enabled:
        return kv
    logger.warning("KV storage not configured - falling back to in-memory storage")
    return InMemoryStorage()
