"""
Insight service - General health information from the AI assistant

The assistant never diagnoses: the prompt pins the model to general
information and a fixed disclaimer, and Gemini's own safety filters run at
BLOCK_MEDIUM_AND_ABOVE.
"""

import logging
import re
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from .gemini_client import GeminiClient, GeminiError
from .repository import InsightRepository

logger = logging.getLogger(__name__)

MAX_SYMPTOMS_LENGTH = 1000

SUSPICIOUS_PATTERNS = [
    re.compile(r"<script>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
]

DISCLAIMER = (
    "Disclaimer: This information is not medical advice. Please consult with a qualified "
    "healthcare professional for any health concerns or before making any decisions related "
    "to your health."
)

PROMPT_TEMPLATE = """You are "ProHealth Connect AI Assistant," a helpful AI designed to provide general health information.

A user has described the following symptoms: "{symptoms}"

Based on these symptoms, please provide some general information about potential common conditions or factors that MIGHT be associated with them.
Structure your response clearly. If appropriate, use bullet points for different possibilities.
Your entire response should be for informational purposes ONLY.

CRITICAL INSTRUCTIONS - YOU MUST FOLLOW THESE:

DO NOT PROVIDE MEDICAL DIAGNOSIS. Do not state or imply that the user has any specific condition.

DO NOT SUGGEST SPECIFIC TREATMENTS, MEDICATIONS, OR DOSAGES.

DO NOT ASK FOLLOW-UP QUESTIONS TO GATHER MORE MEDICAL DETAILS FROM THE USER.

ALWAYS INCLUDE THE FOLLOWING DISCLAIMER VERBATIM AT THE VERY END OF YOUR RESPONSE:
"{disclaimer}"

If the user's input is too vague, clearly inappropriate for your function, or describes what seems to be a very serious medical emergency, you must politely state that you cannot provide specific information and that they should seek immediate medical attention from a healthcare professional.

Keep your response to a helpful length, focusing on general information."""

NO_RESPONSE_ERROR = "Failed to get insights from AI. The AI did not provide a response."
UNAVAILABLE_ERROR = (
    "The AI Health Assistant is temporarily unavailable due to a configuration issue. "
    "Please try again later or contact support if the issue persists."
)
PROCESSING_ERROR = "An error occurred while processing your request with the AI service."


def validate_symptoms(symptoms: Any) -> Optional[str]:
    """Return an error message for unacceptable input, None if it is fine"""
    if not symptoms or not isinstance(symptoms, str):
        return "Symptom description is required."

    trimmed = symptoms.strip()
    if not trimmed:
        return "Symptom description cannot be empty."
    if len(trimmed) > MAX_SYMPTOMS_LENGTH:
        return "Input is too long. Please keep it under 1000 characters."

    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(trimmed):
            return "Invalid input detected."
    return None


def build_prompt(symptoms: str) -> str:
    return PROMPT_TEMPLATE.format(symptoms=symptoms, disclaimer=DISCLAIMER)


class InsightService:
    def __init__(self, db: Session, client: GeminiClient):
        self.db = db
        self.client = client
        self.repo = InsightRepository()

    def _log_error(self, user: User, symptoms: Any, error: str) -> None:
        self.repo.log_interaction(
            self.db,
            user.id,
            symptoms if isinstance(symptoms, str) else "",
            "",
            "ERROR",
            error,
        )

    async def get_symptom_insight(self, symptoms: Any, user: User) -> str:
        error = validate_symptoms(symptoms)
        if error:
            self._log_error(user, symptoms, error)
            raise HTTPException(status_code=400, detail=error)

        try:
            result = await self.client.generate(build_prompt(symptoms))
        except GeminiError as e:
            logger.error(f"❌ Error getting AI symptom insights for user {user.id}: {e}")
            self._log_error(user, symptoms, str(e))
            raise HTTPException(status_code=500, detail=PROCESSING_ERROR) from None

        if not result.text:
            if result.block_reason:
                logger.warning(f"⚠️ Gemini response blocked for user {user.id}: {result.block_reason}")
                self._log_error(user, symptoms, f"AI response blocked due to: {result.block_reason}")
                raise HTTPException(
                    status_code=400,
                    detail=(
                        f"AI response blocked due to: {result.block_reason}. "
                        "Please rephrase your query or ensure it's appropriate."
                    ),
                )

            self._log_error(user, symptoms, NO_RESPONSE_ERROR)
            raise HTTPException(status_code=500, detail=NO_RESPONSE_ERROR)

        self.repo.log_interaction(self.db, user.id, symptoms, result.text, "SUCCESS")
        logger.info(f"✅ AI insight generated for user {user.id}")
        return result.text
