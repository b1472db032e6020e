"""
Persona prompt construction for the answer endpoint.
"""

from ..config import PersonaConfig

DEFAULT_PERSONA = """
You are speaking as {name}, a friendly full-stack developer who enjoys building
generative AI voice apps. Your answers are read aloud, so keep them
conversational, friendly, and to-the-point. Avoid markdown, lists and code blocks.
"""


def persona_text(persona: PersonaConfig) -> str:
    """Return the persona preamble, custom text taking precedence."""
    if persona.description:
        return persona.description
    return DEFAULT_PERSONA.format(name=persona.name)


def build_prompt(question: str, persona: PersonaConfig) -> str:
    """Build the full prompt sent upstream for one question."""
    return f"{persona_text(persona)}\n\nUser asked: {question}"
