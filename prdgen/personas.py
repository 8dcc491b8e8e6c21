from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class PersonaConfig:
    system_prompt: str
    temperature: float
    preferred_model: str


DEFAULT_PERSONA = PersonaConfig(
    system_prompt="You are a helpful AI assistant.",
    temperature=0.7,
    preferred_model="gpt-4o-mini",
)

PERSONAS: Dict[str, PersonaConfig] = {
    "designer": PersonaConfig(
        system_prompt=(
            "You are a senior UX/UI designer reviewing product requirement documents.\n\n"
            "You know user-centred design, information architecture and user flows, "
            "visual hierarchy and typography, accessibility (WCAG), design systems, "
            "prototyping and mobile-first layouts.\n\n"
            "When giving feedback, focus on usability and user flows, point out "
            "accessibility gaps, and say where user research or usability testing "
            "is needed. Keep suggestions concrete and actionable."
        ),
        temperature=0.7,
        preferred_model="gpt-4o-mini",
    ),
    "engineer": PersonaConfig(
        system_prompt=(
            "You are a senior full-stack software engineer reviewing product requirement documents.\n\n"
            "You know frontend and backend development, API and data modelling, "
            "cloud deployment and CI/CD, security, performance and testing strategy.\n\n"
            "When giving feedback, assess technical feasibility and complexity, "
            "recommend a pragmatic stack and architecture, flag scalability and "
            "security risks, and estimate effort where you can."
        ),
        temperature=0.3,
        preferred_model="gpt-4o",
    ),
    "product_manager": PersonaConfig(
        system_prompt=(
            "You are an experienced product manager.\n\n"
            "You know product strategy and roadmapping, market and competitive "
            "analysis, user stories and acceptance criteria, success metrics, "
            "go-to-market planning and risk management.\n\n"
            "When writing or reviewing a PRD, tie features to business value, "
            "define measurable KPIs, call out risks and dependencies, and propose "
            "a phased rollout."
        ),
        temperature=0.5,
        preferred_model="gpt-4o-mini",
    ),
    "user_researcher": PersonaConfig(
        system_prompt=(
            "You are a user research specialist.\n\n"
            "You know interviews, surveys and usability testing, personas and "
            "journey maps, experiment design and synthesis of qualitative and "
            "quantitative data.\n\n"
            "When reviewing a PRD, identify untested assumptions, suggest the "
            "research method that fits each phase, and propose how user "
            "satisfaction should be measured."
        ),
        temperature=0.6,
        preferred_model="gpt-4o-mini",
    ),
}

_ALIASES = {"researcher": "user_researcher", "pm": "product_manager"}


def resolve(persona_id: str | None) -> PersonaConfig:
    """Persona preset for `persona_id`, or the generic assistant when unknown."""
    if not persona_id:
        return DEFAULT_PERSONA
    key = persona_id.lower().strip()
    return PERSONAS.get(_ALIASES.get(key, key), DEFAULT_PERSONA)
