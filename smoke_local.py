#!/usr/bin/env python3
"""
Walk a full story against a locally started backend running with stub models.
"""
import asyncio
import os
import subprocess
import sys
import time

import httpx

PORT = 8001
BASE_URL = f"http://127.0.0.1:{PORT}"

async def walk_story(hero: str = "Brave Bee") -> bool:
    async with httpx.AsyncClient(base_url=BASE_URL, timeout=60) as client:
        r = await client.get("/start", params={"hero": hero, "dob": "2024-03"})
        print(f"/start -> {r.status_code} {r.headers.get('location')}")
        if r.status_code != 303:
            return False

        r = await client.get("/view", params={"hero": hero})
        print(f"/view -> {r.status_code} ({len(r.text)} bytes of HTML)")
        if r.status_code != 200:
            return False

        looped = False
        steps = 0
        while not looped:
            r = await client.get("/api/next", params={"hero": hero})
            data = r.json()
            steps += 1
            print(f"/api/next -> {data}")
            looped = data["looped"]

            img = await client.get("/api/image.png", params={"hero": hero, "index": data["index"]})
            print(f"/api/image.png?index={data['index']} -> {img.status_code}, {len(img.content)} bytes")
            if img.status_code != 200:
                return False

        print(f"Story looped after {steps} steps")
        return True

def main() -> int:
    env = {**os.environ, "BYTEKINDLE_OFFLINE": "1"}
    server_process = subprocess.Popen([
        sys.executable, "-m", "uvicorn",
        "bytekindle.app:app",
        "--host", "127.0.0.1",
        "--port", str(PORT)
    ], cwd="bytekindle_backend", env=env)

    # Wait for server to start
    time.sleep(3)
    try:
        return 0 if asyncio.run(walk_story()) else 1
    finally:
        server_process.terminate()
        try:
            server_process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            server_process.kill()

if __name__ == "__main__":
    success = main() == 0
    if success:
        print("✅ Local story walk successful!")
    else:
        print("❌ Local story walk failed!")
    sys.exit(0 if success else 1)
