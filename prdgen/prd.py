from __future__ import annotations

from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from prdgen.llm.types import Message, Request
from prdgen import personas

NOT_SPECIFIED = "Not specified"

PRD_SECTIONS = [
    "Executive Summary",
    "Product Overview",
    "Market Analysis & Target Audience",
    "Product Goals & Success Metrics",
    "Feature Requirements & User Stories",
    "Technical Architecture & Requirements",
    "User Experience & Interface Design",
    "Implementation Timeline & Milestones",
    "Risk Assessment & Mitigation",
    "Success Metrics & KPIs",
]


class PRDForm(BaseModel):
    app_name: str = Field(..., min_length=1, description="Working name of the app")
    description: str = Field(..., min_length=1, description="What the app does")
    target_audience: Optional[str] = None
    platform: Optional[str] = None
    primary_goals: Optional[str] = None
    key_features: Optional[str] = None
    tech_stack: Optional[str] = None
    timeline: Optional[str] = None


def load_form_file(path: str) -> PRDForm:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Form YAML must be a mapping of field names to values")
    return PRDForm.model_validate(data)


def create_messages(system_prompt: str, user_message: str, context: Optional[str] = None) -> List[Message]:
    messages = [Message("system", system_prompt)]
    if context:
        messages.append(Message("system", f"Context: {context}"))
    messages.append(Message("user", user_message))
    return messages


def _field(value: Optional[str]) -> str:
    value = (value or "").strip()
    return value or NOT_SPECIFIED


def build_prd_prompt(form: PRDForm) -> str:
    sections = "\n".join(f"{i}. {s}" for i, s in enumerate(PRD_SECTIONS, start=1))
    return (
        "Generate a comprehensive Product Requirements Document (PRD) based on the following information:\n\n"
        f"App Name: {form.app_name.strip()}\n"
        f"Description: {form.description.strip()}\n"
        f"Target Audience: {_field(form.target_audience)}\n"
        f"Platform: {_field(form.platform)}\n"
        f"Primary Goals: {_field(form.primary_goals)}\n"
        f"Key Features: {_field(form.key_features)}\n"
        f"Tech Stack: {_field(form.tech_stack)}\n"
        f"Timeline: {_field(form.timeline)}\n\n"
        "Please create a professional, detailed PRD that includes:\n"
        f"{sections}\n\n"
        "Format the response in clear markdown with proper headings and sections."
    )


def build_prd_request(
    form: PRDForm,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: int = 4000,
    stream: bool = False,
) -> Request:
    persona = personas.resolve("product_manager")
    return Request(
        model=model or persona.preferred_model,
        messages=create_messages(persona.system_prompt, build_prd_prompt(form)),
        temperature=persona.temperature if temperature is None else temperature,
        max_tokens=max_tokens,
        stream=stream,
    )


def build_chat_request(
    history: List[Message],
    user_message: str,
    persona_id: Optional[str] = None,
    model: Optional[str] = None,
    context: Optional[str] = None,
    max_tokens: Optional[int] = None,
    stream: bool = True,
) -> Request:
    """Append `user_message` to the caller's history and build the next request.

    The persona prompt (and optional document context) lead the message list;
    they are not stored in `history`.
    """
    persona = personas.resolve(persona_id)
    history.append(Message("user", user_message))
    lead = [Message("system", persona.system_prompt)]
    if context:
        lead.append(Message("system", f"Context: {context}"))
    return Request(
        model=model or persona.preferred_model,
        messages=lead + list(history),
        temperature=persona.temperature,
        max_tokens=max_tokens,
        stream=stream,
    )
