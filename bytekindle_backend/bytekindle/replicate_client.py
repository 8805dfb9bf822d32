import os, time, httpx, asyncio, logging
from typing import Optional
from .prompts import build_image_prompt
from .settings import REPLICATE_POLL_INTERVAL_MS, REPLICATE_POLL_TIMEOUT_S, REPLICATE_MODEL_VERSION, IMAGE_SIZE

logger = logging.getLogger(__name__)

API_BASE = "https://api.replicate.com/v1"
FINISHED = ("succeeded", "failed", "canceled")

def _model_selector() -> str:
    # Explicit version from env when pinned, otherwise the public model's latest version
    return REPLICATE_MODEL_VERSION or "black-forest-labs/flux-schnell"

def _parse_selector(selector: str):
    """Split a selector into ("model", {"owner", "name"}) or ("version", {"version"})."""
    owner_name = selector.partition(":")[0]
    if "/" in owner_name:
        owner, name = owner_name.split("/", 1)
        return "model", {"owner": owner, "name": name}
    return "version", {"version": selector}

class ReplicateImageGenerator:
    def __init__(self, selector: Optional[str] = None, size: int = IMAGE_SIZE,
                 poll_interval_s: float = REPLICATE_POLL_INTERVAL_MS / 1000.0,
                 poll_timeout_s: float = REPLICATE_POLL_TIMEOUT_S,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.selector = selector or _model_selector()
        self.size = size
        self.poll_interval_s = poll_interval_s
        self.poll_timeout_s = poll_timeout_s
        self._transport = transport

    def _api_client(self) -> httpx.AsyncClient:
        token = os.getenv("REPLICATE_API_TOKEN", "")
        if not token:
            raise RuntimeError("REPLICATE_API_TOKEN is not set; please configure your .env")
        return httpx.AsyncClient(
            base_url=API_BASE,
            headers={"Authorization": f"Token {token}"},
            timeout=30,
            transport=self._transport,
        )

    async def generate_image(self, scene_text: str, context: Optional[str] = None, age: Optional[str] = None, hero: Optional[str] = None) -> bytes:
        prompt = build_image_prompt(scene_text, hero=hero, context=context, age=age, size=self.size)
        logger.info(f"Starting Replicate image generation for scene: {scene_text[:100]}...")

        async with self._api_client() as api:
            prediction_id = await self._create(api, prompt)
            output_url = await self._wait(api, prediction_id)

        # Delivery URLs are pre-signed; the API token stays with the API client
        async with httpx.AsyncClient(timeout=30, transport=self._transport) as client:
            img = await client.get(output_url)
            img.raise_for_status()
        logger.info(f"Downloaded {len(img.content)} image bytes from {output_url}")
        return img.content

    async def _create(self, api: httpx.AsyncClient, prompt: str) -> str:
        body = {"input": {"prompt": prompt, "aspect_ratio": "1:1", "output_format": "png", "num_outputs": 1}}
        mode, data = _parse_selector(self.selector)
        logger.info(f"Using Replicate model: {self.selector}")

        if mode == "version":
            r = await api.post("/predictions", json={**body, "version": data["version"]})
        else:
            model_path = f"/models/{data['owner']}/{data['name']}"
            r = await api.post(f"{model_path}/predictions", json=body)
            if r.status_code == 404:
                # Some models are only reachable through an explicit version
                logger.error(f"Replicate model endpoint 404 for {self.selector}, resolving latest version")
                version_id = await self._latest_version(api, model_path)
                r = await api.post("/predictions", json={**body, "version": version_id})

        if r.status_code >= 400:
            logger.error(f"Replicate create failed {r.status_code}: {r.text}")
            raise RuntimeError(f"Replicate create failed {r.status_code}: {r.text}")
        prediction_id = r.json()["id"]
        logger.info(f"Replicate prediction created with ID: {prediction_id}")
        return prediction_id

    async def _latest_version(self, api: httpx.AsyncClient, model_path: str) -> str:
        r = await api.get(model_path)
        r.raise_for_status()
        version_id = (r.json().get("latest_version") or {}).get("id")
        if not version_id:
            raise RuntimeError(f"Could not resolve latest version for {self.selector}")
        logger.info(f"Resolved latest version: {version_id}")
        return version_id

    async def _wait(self, api: httpx.AsyncClient, prediction_id: str) -> str:
        deadline = time.monotonic() + self.poll_timeout_s
        while True:
            r = await api.get(f"/predictions/{prediction_id}")
            if r.status_code >= 400:
                logger.error(f"Replicate status failed {r.status_code}: {r.text}")
                raise RuntimeError(f"Replicate status failed {r.status_code}: {r.text}")
            body = r.json()
            status = body.get("status")
            logger.info(f"Replicate prediction {prediction_id} status: {status}")

            if status in FINISHED:
                break
            if time.monotonic() > deadline:
                logger.error("Replicate polling timeout")
                raise TimeoutError("Replicate polling timeout")
            await asyncio.sleep(self.poll_interval_s)

        if status != "succeeded":
            logger.error(f"Replicate failed: {status}. error={body.get('error')}")
            raise RuntimeError(f"Replicate failed: {status}. error={body.get('error')}")
        output = body.get("output")
        if isinstance(output, list):
            output = output[0] if output else None
        if not output:
            logger.error("Replicate succeeded but no output URL")
            raise RuntimeError("Replicate succeeded but no output URL")
        return output
