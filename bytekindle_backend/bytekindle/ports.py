"""Interfaces the session controller depends on."""
from typing import List, Optional, Protocol

class StateStore(Protocol):
    """Key-value store with per-key expiry."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, value: str, ttl: int) -> bool:
        ...

class StoryGenerator(Protocol):
    """Turns a hero name into an ordered list of scene descriptions."""

    async def generate_story(self, subject: str, age: Optional[str] = None) -> List[str]:
        ...

class ImageGenerator(Protocol):
    """Draws one scene and returns the encoded image bytes."""

    async def generate_image(self, scene_text: str, context: Optional[str] = None, age: Optional[str] = None, hero: Optional[str] = None) -> bytes:
        ...
