"""Story session state machine.

Every request reads its hero's StoryState from the store, acts, and writes the result back.
There is no locking: two concurrent starts for a new hero may both generate a story, and
the later write wins. Store read errors propagate untouched: a story that could not be read
is never treated as missing, so it is never regenerated over.
"""
import logging
from typing import List, Optional
from urllib.parse import quote

from .keys import derive_key
from .models import AdvanceResult, StoryState, ViewState
from .ports import ImageGenerator, StateStore, StoryGenerator
from .prompts import describe_age
from .settings import (
    FALLBACK_SCENE, FALLBACK_SCENE_COUNT, STARTED_KEY_PREFIX, STORY_TTL_SECONDS
)

logger = logging.getLogger(__name__)

def fallback_scenes() -> List[str]:
    return [FALLBACK_SCENE] * FALLBACK_SCENE_COUNT

def view_url(subject: str) -> str:
    return f"/view?hero={quote(subject, safe='')}"

class SessionController:
    def __init__(self, store: StateStore, story_generator: StoryGenerator, image_generator: ImageGenerator, ttl_seconds: int = STORY_TTL_SECONDS):
        self.store = store
        self.story_generator = story_generator
        self.image_generator = image_generator
        self.ttl_seconds = ttl_seconds

    async def load(self, subject: str) -> Optional[StoryState]:
        return StoryState.from_record(await self.store.get(derive_key(subject)))

    async def save(self, subject: str, state: StoryState) -> bool:
        return await self.store.put(derive_key(subject), state.to_record(), self.ttl_seconds)

    async def _generate_scenes(self, subject: str, age: str) -> List[str]:
        try:
            scenes = await self.story_generator.generate_story(subject, age)
            scenes = [str(s).strip() for s in scenes or [] if s is not None and str(s).strip()]
        except Exception as e:
            logger.error(f"Story generation failed for hero {subject!r}, using fallback: {e}")
            return fallback_scenes()
        if not scenes:
            logger.error(f"Story generation returned no scenes for hero {subject!r}, using fallback")
            return fallback_scenes()
        return scenes

    async def start(self, subject: str, birth_month: Optional[str] = None) -> str:
        """Begin a story for this hero, or rewind the existing one to its first scene.

        Returns the URL of the viewer page to redirect to.
        """
        state = await self.load(subject)
        if state is not None:
            logger.info(f"Rewinding existing story for hero {subject!r}")
            await self.save(subject, state.rewound())
            return view_url(subject)

        scenes = await self._generate_scenes(subject, describe_age(birth_month))
        state = StoryState(scenes=scenes, current_index=0, birth_month=birth_month)
        logger.info(f"Created story with {state.total} scenes for hero {subject!r}")
        await self.save(subject, state)
        return view_url(subject)

    async def view(self, subject: str) -> Optional[ViewState]:
        state = await self.load(subject)
        if state is None:
            return None
        return ViewState(
            subject=subject,
            index=state.current_index,
            total=state.total,
            description=state.current_scene,
        )

    async def image(self, subject: str, index: int) -> Optional[bytes]:
        """Draw scene `index` of the hero's story. Image failures propagate to the caller."""
        state = await self.load(subject)
        if state is None or not 0 <= index < state.total:
            return None
        return await self.image_generator.generate_image(
            state.scenes[index],
            context=" ".join(state.scenes),
            age=describe_age(state.birth_month),
            hero=subject.strip() or None,
        )

    async def advance(self, subject: str) -> Optional[AdvanceResult]:
        state = await self.load(subject)
        if state is None:
            return None
        state, looped = state.advanced()
        await self.save(subject, state)
        return AdvanceResult(index=state.current_index, desc=state.current_scene, looped=looped)

    async def record_started(self, subject: str) -> None:
        """Mark that this hero has a story in progress. Failures are logged and dropped."""
        try:
            await self.store.put(derive_key(subject, prefix=STARTED_KEY_PREFIX), "active", self.ttl_seconds)
        except Exception as e:
            logger.error(f"Failed to record story start for hero {subject!r}: {e}")
