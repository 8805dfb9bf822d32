from datetime import date
from typing import Optional

SYSTEM_PROMPT = """You are an author of educational picture books for very young children. Write short adventure stories that follow these rules:
- One simple, concrete sentence per scene describing what the hero sees or does.
- Every scene must be drawable as a single illustration.
- Gentle discovery: gardens, forests, ponds, meeting 2-3 friendly animals along the way.
- No danger, no sadness, no text or signs inside the pictures.
Output ONLY valid JSON matching the provided schema."""


STORY_SCHEMA = r"""{
  "scenes": ["<scene 1 description>", "<scene 2 description>", "..."]
}"""


USER_PROMPT_TEMPLATE = """Inputs:
- Hero: {hero}
- Audience age: {age}
- Language: en-US

Schema:
{schema}

Constraints:
- 6-8 scenes, in story order.
- The hero appears in every scene; keep the hero's look consistent.
- Start with the hero setting out, end with the hero resting happily.
Return ONLY valid JSON for the schema above."""


IMAGE_PROMPT_TEMPLATE = """Educational children's book illustration for a {age} audience.
{hero_line}Style: high-contrast charcoal sketch, grayscale, pure white background, bold clean lines.
Scene: {scene}
{continuity}
Technical requirements:
  - The hero must be small, occupying no more than 1/5 of the drawing area.
  - Place the hero in a large, detailed environment to emphasize discovery.
  - Include 2-3 distinct, related secondary characters.
  - Zero shading, optimized for 16-level Kindle E-ink grayscale.
  - {size}x{size} resolution."""


def describe_age(birth_month: Optional[str], today: Optional[date] = None) -> str:
    """Turn a YYYY-MM birth month into an age phrase like "1y 7m".

    Unparseable or future birth months fall back to a generic "toddler" audience.
    """
    if not birth_month:
        return "toddler"
    try:
        year, month = (int(part) for part in birth_month.split("-")[:2])
    except ValueError:
        return "toddler"
    today = today or date.today()
    years = today.year - year
    months = today.month - month
    if months < 0:
        years -= 1
        months += 12
    if years < 0:
        return "toddler"
    return f"{years}y {months}m"


def build_story_prompt(hero: str, age: Optional[str]) -> str:
    return USER_PROMPT_TEMPLATE.format(hero=hero, age=age or "toddler", schema=STORY_SCHEMA)


def build_image_prompt(scene: str, hero: Optional[str] = None, context: Optional[str] = None, age: Optional[str] = None, size: int = 600) -> str:
    hero_line = f"Book Character/Hero: a realistic but whimsical {hero}.\n" if hero else ""
    continuity = f"Story so far, for character continuity: {context}\n" if context else ""
    return IMAGE_PROMPT_TEMPLATE.format(
        age=age or "toddler",
        hero_line=hero_line,
        scene=scene,
        continuity=continuity,
        size=size,
    )
