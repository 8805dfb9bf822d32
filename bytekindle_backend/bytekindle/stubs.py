"""Deterministic collaborators for offline runs and tests."""
import base64
from typing import List, Optional, Sequence

# 1x1 white PNG
BLANK_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAAAAAA6fptVAAAACklEQVR4nGP4DwABAQEAG7buVgAAAABJRU5ErkJggg=="
)

DEFAULT_SCENES = [
    "{hero} steps out of a little house into a sunny garden.",
    "{hero} meets a snail and a ladybug beside the flower bed.",
    "{hero} follows a butterfly down to the pond.",
    "{hero} rests under a big oak tree with the new friends.",
]

class StubStoryGenerator:
    def __init__(self, scenes: Optional[Sequence[str]] = None, error: Optional[Exception] = None):
        self.scenes = list(scenes) if scenes is not None else None
        self.error = error
        self.calls: List[str] = []

    async def generate_story(self, subject: str, age: Optional[str] = None) -> List[str]:
        self.calls.append(subject)
        if self.error is not None:
            raise self.error
        if self.scenes is not None:
            return list(self.scenes)
        hero = subject.strip() or "The hero"
        return [s.format(hero=hero) for s in DEFAULT_SCENES]

class StubImageGenerator:
    def __init__(self, payload: bytes = BLANK_PNG, error: Optional[Exception] = None):
        self.payload = payload
        self.error = error
        self.calls: List[dict] = []

    async def generate_image(self, scene_text: str, context: Optional[str] = None, age: Optional[str] = None, hero: Optional[str] = None) -> bytes:
        self.calls.append({"scene_text": scene_text, "context": context, "age": age, "hero": hero})
        if self.error is not None:
            raise self.error
        return self.payload
