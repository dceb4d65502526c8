"""
Extraction collaborator backed by the OpenAI Responses API.

Sends the question table, current answers and the latest utterance, and asks
for JSON matching a strict schema. Returns the raw model text; parsing and
validation happen in the extraction engine.

Every failure mode (missing key, network, timeout, non-2xx, empty output)
surfaces as ExtractionFailure so the caller can degrade gracefully.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Dict, List, Optional

import aiohttp

from logging_setup import get_logger, Component as LogComponent

from .config import LifePlanConfig
from .errors import ExtractionFailure

logger = get_logger(LogComponent.LLM)

SYSTEM_PROMPT = (
    "You extract structured LifePlan answers from a user's most recent utterance. "
    "You MUST output JSON that matches the given schema. "
    "Write answers in the user's voice (first-person, natural), without quotation marks "
    "and without attributing ('I said', 'the user said'). "
    "If the utterance does not meaningfully answer any LifePlan question, return updates:[] "
    "and maybe a side_note capturing anything useful. "
    "Only mark status='complete' if the answer feels sufficiently covered for a first draft; "
    "otherwise use 'partial'."
)

EXTRACTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "updates": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "question_id": {"type": "string"},
                    "status": {"type": "string", "enum": ["unanswered", "partial", "complete"]},
                    "answer_text": {"type": "string"},
                    "confidence": {"type": "number"},
                },
                "required": ["question_id", "status", "answer_text", "confidence"],
            },
        },
        "side_notes": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["updates", "side_notes"],
}


def output_text_from_response(resp: Dict[str, Any]) -> str:
    """Concatenate every output_text chunk of a Responses API payload."""
    chunks: List[str] = []
    for item in resp.get("output") or []:
        for content in (item or {}).get("content") or []:
            if content.get("type") == "output_text" and isinstance(content.get("text"), str):
                chunks.append(content["text"])
    return "".join(chunks).strip()


class OpenAIExtractionClient:
    """Classifies one utterance against the question table."""

    def __init__(self, config: LifePlanConfig):
        self.config = config

    def build_request(
        self,
        question_table: List[Dict[str, Any]],
        current_answers: List[Dict[str, Any]],
        fragment: str,
    ) -> Dict[str, Any]:
        return {
            "model": self.config.extract_model,
            "input": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": json.dumps(
                        {
                            "question_table": question_table,
                            "current_answers": current_answers,
                            "latest_utterance": fragment,
                        },
                        ensure_ascii=False,
                        indent=2,
                    ),
                },
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "lifeplan_extraction",
                    "strict": True,
                    "schema": EXTRACTION_SCHEMA,
                },
            },
            "max_output_tokens": self.config.extract_max_output_tokens,
        }

    async def classify(
        self,
        question_table: List[Dict[str, Any]],
        current_answers: List[Dict[str, Any]],
        fragment: str,
        user_id: Optional[str] = None,
    ) -> str:
        """
        Run one extraction call and return the raw model text.

        Raises ExtractionFailure on any transport or API error.
        """
        if not self.config.openai_api_key:
            raise ExtractionFailure("Missing OPENAI_API_KEY")

        endpoint = f"{self.config.openai_base_url}/responses"
        body = self.build_request(question_table, current_answers, fragment)
        headers = {"Authorization": f"Bearer {self.config.openai_api_key}"}
        timeout = aiohttp.ClientTimeout(total=self.config.extract_timeout_seconds)
        start_ts = time.time()

        try:
            async with aiohttp.ClientSession(timeout=timeout) as s:
                async with s.post(endpoint, json=body, headers=headers) as resp:
                    if not 200 <= resp.status < 300:
                        detail = await resp.text()
                        logger.warning(
                            "Extraction request rejected",
                            user_id=user_id,
                            status=resp.status,
                            latency_ms=int((time.time() - start_ts) * 1000),
                        )
                        raise ExtractionFailure(
                            f"OpenAI POST /responses failed: {resp.status} {resp.reason}",
                            raw_text=detail,
                        )
                    payload = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            logger.warning(
                "Extraction request failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int((time.time() - start_ts) * 1000),
            )
            raise ExtractionFailure(f"Extraction request failed: {type(e).__name__}") from e

        text = output_text_from_response(payload)
        logger.info(
            "Extraction response",
            user_id=user_id,
            model=self.config.extract_model,
            output_chars=len(text),
            latency_ms=int((time.time() - start_ts) * 1000),
        )
        if not text:
            raise ExtractionFailure("Extraction response had no output text", raw_text="")
        return text
