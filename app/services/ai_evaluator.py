# app/services/ai_evaluator.py
"""
AI Evaluator Service
Scores a submission with an LLM and returns {score, feedback, highlights}
"""

import asyncio
import json
import logging
import math
import re
from typing import Any, Optional

import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI
from pydantic import ValidationError

from app.core.config import Settings
from app.core.exceptions import AIErrorKind, AIEvaluationError
from app.schemas.evaluation import AIEvaluationResult
from app.services.cache_service import CacheService

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 10

SYSTEM_PROMPT = "You are a helpful English language evaluation assistant. Reply with JSON only."

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_evaluation_prompt(title: str, submit_text: str, category: str) -> str:
    return f"""
You are an expert English language evaluator. Evaluate the following {category.lower()} submission.

Title: {title}
Submission: {submit_text}

Respond with a JSON object of exactly this shape:
{{
  "score": <integer between {MIN_SCORE} and {MAX_SCORE}>,
  "feedback": "<detailed feedback for the student>",
  "highlights": ["<phrase copied verbatim from the submission>", ...]
}}

Evaluation criteria:
- Grammar and sentence structure
- Vocabulary usage and variety
- Content organization and coherence
- Relevance to the topic
- Overall communication effectiveness

Highlights must be phrases or sentences copied exactly from the submission that show
good language use or need improvement.
"""


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_evaluation_response(content: Optional[str]) -> AIEvaluationResult:
    """
    Validate raw model output.

    Args:
        content: message content returned by the model

    Returns:
        AIEvaluationResult with the score rounded to the nearest integer

    Raises:
        AIEvaluationError(MALFORMED_RESPONSE): no JSON object, missing or mistyped
            fields, or a score outside [0, 10]. A score is never fabricated.
    """
    if not content:
        raise AIEvaluationError(AIErrorKind.MALFORMED_RESPONSE, "empty response")

    match = _JSON_OBJECT.search(content)
    if not match:
        raise AIEvaluationError(AIErrorKind.MALFORMED_RESPONSE, "no JSON object in response")
    try:
        parsed = json.loads(match.group(0))
    except ValueError as e:
        raise AIEvaluationError(AIErrorKind.MALFORMED_RESPONSE, f"invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise AIEvaluationError(AIErrorKind.MALFORMED_RESPONSE, "response is not a JSON object")

    score = parsed.get("score")
    feedback = parsed.get("feedback")
    highlights = parsed.get("highlights")

    # bool is an int subclass; reject it explicitly
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        raise AIEvaluationError(AIErrorKind.MALFORMED_RESPONSE, "score must be a number")
    if score < MIN_SCORE or score > MAX_SCORE:
        raise AIEvaluationError(
            AIErrorKind.MALFORMED_RESPONSE,
            f"score {score} outside [{MIN_SCORE}, {MAX_SCORE}]",
        )
    if not isinstance(feedback, str):
        raise AIEvaluationError(AIErrorKind.MALFORMED_RESPONSE, "feedback must be a string")
    if not isinstance(highlights, list):
        raise AIEvaluationError(AIErrorKind.MALFORMED_RESPONSE, "highlights must be a list")

    return AIEvaluationResult(
        score=max(MIN_SCORE, min(MAX_SCORE, _round_half_up(score))),
        feedback=feedback.strip(),
        highlights=[h for h in highlights if isinstance(h, str)],
    )


class AIEvaluator:
    def __init__(self, settings: Settings, cache: CacheService, client: Any = None):
        self.settings = settings
        self.cache = cache
        self._client = client

    def _get_client(self) -> Any:
        # created on first use so the app can boot without credentials
        if self._client is None:
            if not self.settings.OPENAI_API_KEY:
                raise AIEvaluationError(AIErrorKind.AUTH, "OPENAI_API_KEY is not configured")
            if self.settings.AZURE_OPENAI_ENDPOINT:
                self._client = AsyncAzureOpenAI(
                    api_key=self.settings.OPENAI_API_KEY,
                    azure_endpoint=self.settings.AZURE_OPENAI_ENDPOINT,
                    api_version=self.settings.AZURE_OPENAI_API_VERSION,
                    timeout=self.settings.AI_TIMEOUT_SECONDS,
                    max_retries=0,
                )
            else:
                self._client = AsyncOpenAI(
                    api_key=self.settings.OPENAI_API_KEY,
                    base_url=self.settings.OPENAI_BASE_URL,
                    timeout=self.settings.AI_TIMEOUT_SECONDS,
                    max_retries=0,
                )
        return self._client

    async def evaluate(self, title: str, submit_text: str, category: Any) -> AIEvaluationResult:
        """
        Score a submission, serving identical (text, category) pairs from the cache.

        Args:
            title: submission title (part of the prompt, not of the cache key)
            submit_text: the submitted text
            category: SubmissionCategory or its string value

        Returns:
            AIEvaluationResult

        Raises:
            AIEvaluationError: classified as timeout / network / auth / upstream /
                malformed_response
        """
        category = getattr(category, "value", category)
        cache_key = self.cache.ai_evaluation_key(submit_text, category)

        cached = await self.cache.get(cache_key)
        if cached is not None:
            try:
                result = AIEvaluationResult.model_validate(cached)
                logger.info(f"AI evaluation cache hit {cache_key}")
                return result
            except ValidationError:
                logger.warning(f"Ignoring invalid cached evaluation {cache_key}")

        content = await self._complete(build_evaluation_prompt(title, submit_text, category))
        result = parse_evaluation_response(content)

        await self.cache.set(cache_key, result.model_dump(), self.settings.AI_CACHE_TTL_SECONDS)
        logger.info(f"AI evaluation done: score={result.score}, highlights={len(result.highlights)}")
        return result

    async def _complete(self, prompt: str) -> Optional[str]:
        client = self._get_client()
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self.settings.OPENAI_MODEL,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=self.settings.AI_TEMPERATURE,
                    max_tokens=self.settings.AI_MAX_TOKENS,
                    response_format={"type": "json_object"},
                ),
                timeout=self.settings.AI_TIMEOUT_SECONDS,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as e:
            raise AIEvaluationError(
                AIErrorKind.TIMEOUT, f"no response within {self.settings.AI_TIMEOUT_SECONDS}s"
            ) from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise AIEvaluationError(AIErrorKind.AUTH, str(e)) from e
        except openai.APIConnectionError as e:
            raise AIEvaluationError(AIErrorKind.NETWORK, str(e)) from e
        except openai.APIError as e:
            raise AIEvaluationError(AIErrorKind.UPSTREAM, str(e)) from e

        if not response.choices:
            raise AIEvaluationError(AIErrorKind.MALFORMED_RESPONSE, "no choices in response")
        return response.choices[0].message.content
