# gta_watch/services/guidance.py

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..models.incidents import IncidentCategory, parse_category
from ..schemas import DESCRIPTION_MAX_LENGTH

log = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an emergency guidance assistant for GTA Watch, a community emergency awareness tool in the Greater Toronto Area.

CRITICAL RULES:
- Provide CALM, structured, actionable guidance
- NEVER claim to contact authorities or emergency services
- NEVER ask follow-up questions
- Keep responses under 300 words
- Use clear headings and bullet points
- Always suggest calling 911 if the situation is life-threatening
- Focus on immediate safety actions
- Be supportive but not alarmist

Your role is to help people understand what to do next while emphasizing that this is NOT a replacement for calling 911."""

MAX_TOKENS = 500
TEMPERATURE = 0.7

FALLBACK_GUIDANCE = {
    IncidentCategory.SHOOTING: """**Immediate Actions:**
- Get to a safe location immediately
- Stay low and avoid windows
- Call 911 if you have not already
- Do not investigate the source

**Safety Protocols:**
- Lock doors and turn off lights
- Silence your phone
- Wait for official all-clear from police

**When to Call 911:** If you hear gunshots or see someone injured, call immediately.""",
    IncidentCategory.MEDICAL: """**Immediate Actions:**
- Call 911 if not already done
- Do not move the person unless in immediate danger
- Check if they are breathing and conscious
- If trained, provide first aid

**Safety Protocols:**
- Stay with the person until help arrives
- Keep them warm and comfortable
- Note any important medical information

**When to Call 911:** For any serious injury, chest pain, difficulty breathing, or unconsciousness.""",
    IncidentCategory.FIRE: """**Immediate Actions:**
- Call 911 immediately if not done
- Evacuate the building using stairs (not elevators)
- Stay low to avoid smoke
- Close doors behind you

**Safety Protocols:**
- Do not re-enter the building
- Move at least 100 feet away
- Account for all occupants
- Do not use elevators

**When to Call 911:** Immediately for any fire or smoke.""",
    IncidentCategory.ACCIDENT: """**Immediate Actions:**
- Call 911 if there are injuries
- Move to a safe location away from traffic
- Turn on hazard lights if in a vehicle
- Check for injuries to yourself and others

**Safety Protocols:**
- Do not move injured persons unless in danger
- Exchange information with other parties
- Document the scene if safe to do so

**When to Call 911:** For any injuries, blocked roadways, or vehicle damage.""",
    IncidentCategory.ASSAULT: """**Immediate Actions:**
- Move to a safe, public location
- Call 911 immediately
- Do not confront the aggressor
- Seek help from nearby people or businesses

**Safety Protocols:**
- Preserve evidence if possible
- Note details about the incident
- Seek medical attention if injured

**When to Call 911:** Immediately if you or someone else is in danger.""",
    IncidentCategory.SUSPICIOUS: """**Immediate Actions:**
- Maintain a safe distance
- Note details about the situation
- Call 911 if you believe there is immediate danger
- Do not confront suspicious persons

**Safety Protocols:**
- Trust your instincts
- Alert building security if applicable
- Note any vehicle descriptions or license plates

**When to Call 911:** If you believe a crime is in progress or someone is in danger.""",
    IncidentCategory.THEFT: """**Immediate Actions:**
- Ensure your personal safety first
- Do not confront the suspect
- Call 911 if the crime is in progress
- Move to a safe location

**Safety Protocols:**
- Note suspect descriptions
- Preserve the scene if safe
- Contact police non-emergency line for reports

**When to Call 911:** If the suspect is still present or if violence occurred.""",
    IncidentCategory.OTHER: """**Immediate Actions:**
- Assess the situation for immediate danger
- Call 911 if anyone is at risk
- Move to a safe location
- Follow official instructions if provided

**Safety Protocols:**
- Do not put yourself at risk
- Alert authorities to the situation
- Stay informed through official channels

**When to Call 911:** If there is any immediate threat to life or property.""",
}


def fallback_guidance(category) -> str:
    """Static guidance for a category; anything unrecognized gets `other`."""
    cat = parse_category(category) or IncidentCategory.OTHER
    return FALLBACK_GUIDANCE[cat]


def build_user_prompt(
    category: IncidentCategory,
    description: Optional[str],
    latitude: float,
    longitude: float,
) -> str:
    context = ""
    if description and description.strip():
        context = f"Additional context: {description.strip()[:DESCRIPTION_MAX_LENGTH]}"

    return (
        f"A {category.value} incident has been reported in Toronto at coordinates "
        f"({latitude}, {longitude}).\n"
        f"{context}\n\n"
        "Provide immediate, calm guidance on what the reporter should do next. "
        "Structure your response with:\n"
        "1. Immediate Safety Actions (2-3 steps)\n"
        "2. Important Safety Protocols (if applicable)\n"
        "3. When to escalate to 911\n\n"
        "Keep it concise, clear, and actionable."
    )


class GuidanceService:
    """
    Chat-completion guidance with a per-category static fallback.

    `client` is an OpenAI-compatible async client (OpenRouter in production).
    When it is None no request is made and the static text is returned.
    """

    def __init__(self, client: Optional[AsyncOpenAI], model: str):
        if client is None:
            log.warning("OPENROUTER_API_KEY not configured; using static guidance")
        self._client = client
        self._model = model

    async def request_guidance(
        self,
        category: IncidentCategory,
        description: Optional[str],
        latitude: float,
        longitude: float,
    ) -> str:
        if self._client is None:
            return fallback_guidance(category)

        try:
            resp = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": build_user_prompt(category, description, latitude, longitude),
                    },
                ],
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
            )
            content = resp.choices[0].message.content
            if content is not None and not isinstance(content, str):
                raise TypeError(f"message content is {type(content).__name__}")
        except openai.OpenAIError as e:
            log.error("Guidance API error: %s", e)
            return fallback_guidance(category)
        except (IndexError, AttributeError, TypeError) as e:
            log.error("Malformed guidance response: %s", e)
            return fallback_guidance(category)

        if not content or not content.strip():
            return fallback_guidance(category)
        return content.strip()
