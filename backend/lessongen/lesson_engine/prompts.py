"""Lesson engine prompts."""

from __future__ import annotations

EASTER_EGG_TRIGGERS = ("konami", "up up down down")

SYSTEM_PROMPT = (
    "You generate executable TypeScript modules only. "
    "Respond with raw TypeScript without markdown."
)

LESSON_PROMPT = """Generate a complete, executable TypeScript module for an educational lesson based on this outline: "{outline}"

Requirements:
- Create an interactive quiz or educational content
- Use TypeScript with proper types
- Include functions that can be called/executed
- Make it educational and engaging
- Add comments explaining the code
- Include at least 3-5 questions or learning points

Return ONLY the TypeScript code, no markdown formatting or explanations."""

EASTER_EGG_PROMPT = """Generate a fun, retro TypeScript gaming Easter egg! Create an interactive Konami Code detector with:

- A TypeScript class that tracks arrow key presses
- The classic sequence: up, up, down, down, left, right, left, right, B, A
- A celebration function that triggers when completed
- Retro gaming ASCII art comments
- At least 3 different "cheat code" effects (god mode, 30 lives, etc.)
- Make it nostalgic and fun for developers!

Return ONLY the TypeScript code, no markdown formatting or explanations."""


def is_easter_egg(outline: str) -> bool:
    lowered = outline.lower()
    return any(trigger in lowered for trigger in EASTER_EGG_TRIGGERS)


def build_prompt(outline: str) -> str:
    """Return the user prompt sent to a provider for this outline."""
    if is_easter_egg(outline):
        return EASTER_EGG_PROMPT
    return LESSON_PROMPT.format(outline=outline)
