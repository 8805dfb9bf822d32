import logging
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

class StoryState(BaseModel):
    """One hero's story session, stored under the hero's derived key."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    scenes: List[str] = Field(min_length=1)
    current_index: int = Field(default=0, ge=0, alias="currentIndex")
    birth_month: Optional[str] = Field(default=None, alias="birthMonth")

    @model_validator(mode="after")
    def _index_in_range(self):
        if self.current_index >= len(self.scenes):
            raise ValueError(f"currentIndex {self.current_index} out of range for {len(self.scenes)} scenes")
        return self

    @property
    def total(self) -> int:
        return len(self.scenes)

    @property
    def current_scene(self) -> str:
        return self.scenes[self.current_index]

    def advanced(self) -> Tuple["StoryState", bool]:
        """Move the cursor one scene forward, wrapping to the first scene after the last."""
        new_index = (self.current_index + 1) % len(self.scenes)
        return self.model_copy(update={"current_index": new_index}), new_index == 0

    def rewound(self) -> "StoryState":
        return self.model_copy(update={"current_index": 0})

    def to_record(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_record(cls, raw: Optional[str]) -> Optional["StoryState"]:
        """Parse a stored record; unreadable or invalid records count as absent."""
        if raw is None:
            return None
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding invalid story record: {e}")
            return None

class ViewState(BaseModel):
    subject: str
    index: int
    total: int
    description: str

class AdvanceResult(BaseModel):
    index: int
    desc: str
    looped: bool
