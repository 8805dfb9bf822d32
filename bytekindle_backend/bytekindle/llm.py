import os, re, json, asyncio, logging
from typing import List, Optional
from .prompts import SYSTEM_PROMPT, build_story_prompt
from .settings import OPENAI_MODEL

logger = logging.getLogger(__name__)

_client = None

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")

def _get_client():
    global _client
    if _client is None:
        from openai import OpenAI
        api_key = os.getenv("OPENAI_API_KEY", "")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set; please configure your .env")
        _client = OpenAI(api_key=api_key)
    return _client

def parse_scenes(content: Optional[str]) -> List[str]:
    """Pull the ordered scene list out of a model reply.

    Accepts {"scenes": [...]} or a bare JSON list, optionally wrapped in a code fence.
    Raises ValueError when nothing usable is left.
    """
    if not content:
        raise ValueError("empty story response")
    data = json.loads(_CODE_FENCE.sub("", content.strip()))
    if isinstance(data, dict):
        data = data.get("scenes")
    if not isinstance(data, list):
        raise ValueError("story response has no scene list")
    scenes = [str(s).strip() for s in data if s is not None and str(s).strip()]
    if not scenes:
        raise ValueError("story response has no scenes")
    return scenes

class OpenAIStoryGenerator:
    def __init__(self, model: str = OPENAI_MODEL):
        self.model = model

    def _complete(self, messages) -> Optional[str]:
        client = _get_client()
        resp = client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=0.7,
            response_format={"type": "json_object"},
        )
        return resp.choices[0].message.content

    async def generate_story(self, subject: str, age: Optional[str] = None) -> List[str]:
        logger.info(f"Calling OpenAI API to generate story for hero: {subject[:50]}")
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_story_prompt(subject, age)},
        ]
        try:
            content = await asyncio.to_thread(self._complete, messages)
            scenes = parse_scenes(content)
            logger.info(f"Successfully received {len(scenes)} scenes from OpenAI")
            return scenes
        except Exception as e:
            logger.error(f"OpenAI story generation failed: {str(e)}")
            raise
