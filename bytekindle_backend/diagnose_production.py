#!/usr/bin/env python3
"""
Connectivity check for a deployed ByteKindle backend.
Talks to OpenAI, Replicate and KV once each; no story or image is generated.
"""

import asyncio
import logging
import sys
import uuid

from bytekindle.kv_storage import KVStorage
from bytekindle.llm import _get_client
from bytekindle.replicate_client import ReplicateImageGenerator
from bytekindle.settings import has_all_keys, OPENAI_API_KEY, OPENAI_MODEL, REPLICATE_API_TOKEN, KV_REST_API_URL

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("diagnose")

async def check_openai() -> str:
    resp = await asyncio.to_thread(
        _get_client().chat.completions.create,
        model=OPENAI_MODEL,
        messages=[{"role": "user", "content": "Reply with the single word: ready"}],
        max_tokens=5,
    )
    return f"model {OPENAI_MODEL} replied {resp.choices[0].message.content!r}"

async def check_replicate() -> str:
    generator = ReplicateImageGenerator()
    async with generator._api_client() as api:
        r = await api.get("/account")
        r.raise_for_status()
    return f"token belongs to {r.json().get('username')!r}, image model {generator.selector}"

async def check_kv() -> str:
    kv = KVStorage()
    if not kv.enabled:
        raise RuntimeError("KV_REST_API_URL / KV_REST_API_TOKEN not set")
    key = f"bk_diagnose_{uuid.uuid4().hex}"
    marker = uuid.uuid4().hex
    if not await kv.put(key, marker, 60):
        raise RuntimeError(f"write of {key} was rejected")
    if await kv.get(key) != marker:
        raise RuntimeError(f"read of {key} did not return what was written")
    return f"round trip through {key} ok"

CHECKS = [("OpenAI", check_openai), ("Replicate", check_replicate), ("KV", check_kv)]

async def run_diagnostics() -> bool:
    configured = {
        "OPENAI_API_KEY": OPENAI_API_KEY,
        "REPLICATE_API_TOKEN": REPLICATE_API_TOKEN,
        "KV_REST_API_URL": KV_REST_API_URL,
    }
    for name, value in configured.items():
        logger.info(f"{name}: {'set' if value else 'MISSING'}")
    if not has_all_keys():
        logger.error("Required API keys are missing, skipping connectivity checks")
        return False

    failed = []
    for label, check in CHECKS:
        try:
            logger.info(f"{label}: {await check()}")
        except Exception as e:
            logger.error(f"{label} check failed: {e}")
            failed.append(label)

    if failed:
        logger.error(f"Failing services: {', '.join(failed)}")
    else:
        logger.info("All services reachable")
    return not failed

if __name__ == "__main__":
    sys.exit(0 if asyncio.run(run_diagnostics()) else 1)
