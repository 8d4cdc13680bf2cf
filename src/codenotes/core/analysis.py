"""Repository analysis through the Gemini API."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from codenotes.core.errors import (
    AnalysisConfigError,
    AnalysisError,
    AnalysisTransportError,
    MalformedResponseError,
    excerpt,
)
from codenotes.core.notes import UNRATEABLE, is_valid_rating
from codenotes.core.prompts import build_prompt
from codenotes.core.settings import Settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


@dataclass(frozen=True)
class GroundingSource:
    uri: str
    title: str


@dataclass(frozen=True)
class GroundingMetadata:
    search_query: str | None
    sources: list[GroundingSource]
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GenerationResponse:
    text: str
    grounding_metadata: GroundingMetadata | None = None


@dataclass(frozen=True)
class AnalysisResult:
    analysis: str
    rating: int
    grounding_metadata: GroundingMetadata | None = None


@dataclass(frozen=True)
class AnalysisOutcome:
    result: AnalysisResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout_s: float = 60.0,
        use_search_grounding: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout_s = timeout_s
        self._use_search_grounding = use_search_grounding
        self._transport = transport

    async def generate(self, prompt: str) -> GenerationResponse:
        payload = _build_generate_payload(prompt, self._use_search_grounding)
        headers = {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        url = f"{self._base_url}/models/{self._model}:generateContent"

        async with httpx.AsyncClient(
            timeout=self._timeout_s, transport=self._transport
        ) as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()

        return _parse_generate_response(data)


class AnalysisClient:
    """Builds the prompt, calls the model once and validates its answer.

    There is no retry and no cancellation: a caller that no longer wants the
    result simply ignores it.
    """

    def __init__(self, gemini: GeminiClient | None) -> None:
        self._gemini = gemini

    async def analyze(self, repo_url: str, template: str | None = None) -> AnalysisResult:
        prompt = build_prompt(repo_url, template)
        if self._gemini is None:
            raise AnalysisConfigError(
                "GEMINI_API_KEY is not set. Cannot analyze the repository."
            )

        try:
            response = await self._gemini.generate(prompt)
        except httpx.HTTPStatusError as exc:
            body = excerpt(exc.response.text.strip())
            raise AnalysisTransportError(
                f"Gemini request failed with HTTP {exc.response.status_code}: {body}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AnalysisTransportError(f"Gemini request failed: {exc}") from exc
        except ValueError as exc:
            raise AnalysisTransportError(
                f"Gemini returned a response that is not JSON: {exc}"
            ) from exc

        analysis, rating = parse_analysis_text(response.text)
        return AnalysisResult(
            analysis=analysis,
            rating=rating,
            grounding_metadata=response.grounding_metadata,
        )


def build_analysis_client(settings: Settings) -> AnalysisClient:
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; analysis calls will fail")
        return AnalysisClient(None)
    return AnalysisClient(
        GeminiClient(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_model,
            timeout_s=settings.gemini_timeout_s,
            use_search_grounding=settings.gemini_search_grounding,
        )
    )


async def run_analysis(
    client: AnalysisClient, repo_url: str, template: str | None = None
) -> AnalysisOutcome:
    try:
        result = await client.analyze(repo_url, template)
    except AnalysisError as exc:
        logger.error("Repository analysis failed for %s: %s", repo_url, exc)
        return AnalysisOutcome(error=str(exc))
    return AnalysisOutcome(result=result)


def parse_analysis_text(raw_text: str) -> tuple[str, int]:
    text = extract_json_text(raw_text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("Gemini response is not valid JSON: %r", text)
        raise MalformedResponseError(
            "The analysis returned a malformed response. Please try again.", text
        ) from exc

    if not isinstance(data, dict):
        raise MalformedResponseError(
            "The analysis response is not a JSON object.", text
        )
    analysis = data.get("analysis")
    rating = data.get("rating")
    if (
        not isinstance(analysis, str)
        or isinstance(rating, bool)
        or not isinstance(rating, (int, float))
    ):
        logger.error("Missing or mistyped fields in Gemini response: %r", data)
        raise MalformedResponseError(
            "The analysis did not return all expected fields (analysis and rating).",
            text,
        )

    return analysis, normalize_rating(rating)


def extract_json_text(raw_text: str) -> str:
    text = raw_text.strip()
    match = _FENCE_RE.match(text)
    if match and match.group(2):
        return match.group(2).strip()
    return text


def normalize_rating(rating: float) -> int:
    if math.isnan(rating) or not is_valid_rating(rating):
        logger.warning(
            "Gemini rating %s is outside the expected range [-1, 10]; using -1",
            rating,
        )
        return UNRATEABLE
    return int(round(rating))


def _build_generate_payload(prompt: str, use_search_grounding: bool) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
    }
    if use_search_grounding:
        # JSON mime type is rejected by the API when tools are enabled.
        payload["tools"] = [{"google_search": {}}]
    else:
        payload["generationConfig"] = {"responseMimeType": "application/json"}
    return payload


def _parse_generate_response(payload: Any) -> GenerationResponse:
    if not isinstance(payload, dict):
        raise MalformedResponseError(
            "Gemini returned an unexpected response.", json.dumps(payload)
        )
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        feedback = payload.get("promptFeedback")
        reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        detail = f" (blocked: {reason})" if reason else ""
        raise MalformedResponseError(
            f"Gemini returned no candidates{detail}.", json.dumps(payload)
        )

    first = candidates[0]
    if not isinstance(first, dict):
        raise MalformedResponseError(
            "Gemini returned an unexpected response.", json.dumps(payload)
        )
    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    texts: list[str] = []
    if isinstance(parts, list):
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                texts.append(part["text"])

    return GenerationResponse(
        text="".join(texts),
        grounding_metadata=_parse_grounding_metadata(first.get("groundingMetadata")),
    )


def _parse_grounding_metadata(value: Any) -> GroundingMetadata | None:
    if not isinstance(value, dict):
        return None

    search_query = value.get("searchQuery")
    if not isinstance(search_query, str):
        queries = value.get("webSearchQueries")
        search_query = None
        if isinstance(queries, list) and queries and isinstance(queries[0], str):
            search_query = queries[0]

    sources: list[GroundingSource] = []
    chunks = value.get("groundingChunks")
    if isinstance(chunks, list):
        for chunk in chunks:
            if not isinstance(chunk, dict):
                continue
            ref = chunk.get("web") or chunk.get("retrievedContext")
            if not isinstance(ref, dict):
                continue
            uri = str(ref.get("uri") or "").strip()
            if not uri:
                continue
            sources.append(GroundingSource(uri=uri, title=str(ref.get("title") or uri)))

    return GroundingMetadata(search_query=search_query, sources=sources, raw=value)
