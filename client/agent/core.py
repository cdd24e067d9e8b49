"""Question helpers for EyeCare Insights.

:class:`EyeCareAgent` wraps a :class:`~agent.model_client.ModelClient` with
the prompts used by the application and pipes the myth and research answers
through the extractors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .extractors import MythRecord, ResearchRecord, extract_myths, extract_research
from .model_client import ModelClient, PerplexityClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert eye health educator. Provide accurate, evidence-based "
    "information about eye care and vision health. Always include a medical "
    "disclaimer that this information is educational and not a substitute for "
    "professional medical advice. "
)

MYTHS_QUESTION = (
    "What are the top 10 most common eye health myths that people believe, and what "
    "are the scientific facts that debunk them? Please format as myth vs fact pairs "
    "with explanations."
)
MYTHS_CONTEXT = "Focus on providing clear myth vs fact comparisons with scientific explanations."

RESEARCH_QUESTION = (
    "What are the latest breakthrough research findings in eye health and vision "
    "science from the past 6 months? Include study titles, key findings, sources, "
    "and DOI or PubMed links when available."
)
RESEARCH_CONTEXT = (
    "Focus on recent peer-reviewed research and clinical studies. Include specific "
    "URLs or DOI links when possible."
)


@dataclass(frozen=True)
class AgeGroup:
    id: str
    name: str
    description: str


AGE_GROUPS = (
    AgeGroup(
        "children",
        "Children (0-12 years)",
        "Early development, vision screening, and establishing healthy habits",
    ),
    AgeGroup(
        "teens",
        "Teenagers (13-19 years)",
        "Screen time management, sports eye safety, and vision changes",
    ),
    AgeGroup(
        "adults",
        "Adults (20-64 years)",
        "Workplace eye health, digital eye strain, and preventive care",
    ),
    AgeGroup(
        "seniors",
        "Seniors (65+ years)",
        "Age-related conditions, regular monitoring, and quality of life",
    ),
)


def find_age_group(group_id: str) -> AgeGroup | None:
    return next((g for g in AGE_GROUPS if g.id == group_id), None)


class EyeCareAgent:
    """Asks eye-health questions through a model client.

    Failures from the model client are logged and re-raised unchanged.
    """

    def __init__(self, model_client: ModelClient) -> None:
        self.model_client = model_client

    @classmethod
    def from_api_key(cls, api_key: str | None = None, **client_kwargs: Any) -> "EyeCareAgent":
        """Build an agent backed by :class:`PerplexityClient`.

        Raises :class:`~agent.errors.ConfigurationError` when no key is given
        and ``PERPLEXITY_API_KEY`` is unset.
        """
        return cls(PerplexityClient(api_key, **client_kwargs))

    def build_messages(self, question: str, context: Optional[str] = None) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT + (context or "")},
            {"role": "user", "content": question},
        ]

    def ask_question(self, question: str, context: Optional[str] = None) -> str:
        """Send one question and return the raw answer text."""
        try:
            return self.model_client.generate(self.build_messages(question, context))
        except Exception as exc:
            logger.error("Perplexity API error: %s", exc)
            raise

    def get_myths(self) -> List[MythRecord]:
        try:
            answer = self.ask_question(MYTHS_QUESTION, MYTHS_CONTEXT)
        except Exception as exc:
            logger.error("Error fetching myths: %s", exc)
            raise
        return extract_myths(answer)

    def get_research(self, now: Optional[datetime] = None) -> List[ResearchRecord]:
        try:
            answer = self.ask_question(RESEARCH_QUESTION, RESEARCH_CONTEXT)
        except Exception as exc:
            logger.error("Error fetching research: %s", exc)
            raise
        return extract_research(answer, now=now)

    def get_age_specific_advice(self, age_group: str) -> str:
        question = (
            f"What are the specific eye health concerns, preventive measures, and care "
            f"recommendations for {age_group}? Include common conditions, screening "
            f"recommendations, and lifestyle tips."
        )
        context = f"Provide comprehensive eye care guidance specifically for {age_group}."
        try:
            return self.ask_question(question, context)
        except Exception as exc:
            logger.error("Error fetching age-specific advice: %s", exc)
            raise
