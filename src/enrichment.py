"""
Join-message enrichment via the Gemini generateContent REST API.

The adapter never raises to its caller: every outcome is an EnrichmentResult
carrying either generated text or an error description, and callers fall back
to the plain join message on error.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import aiohttp
import structlog

logger = structlog.get_logger()

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"

SYSTEM_INSTRUCTION = (
    "Based on the input, generate a quick, short message to motivate friends "
    "join playing minecraft.\n\n"
    "The message should begin with \"(Player's names) just joined the Minecraft "
    "server, \" and follow with a motivating call-to-action.\n\n"
    "Input: 'Joined player: {a_list_of_player_names}'"
)


@dataclass(frozen=True)
class EnrichmentResult:
    """Generated text, or the reason there is none."""

    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.text) and self.error is None


class Enricher(Protocol):
    """Anything that can turn joined player names into a message."""

    async def summarize(self, names: Sequence[str]) -> EnrichmentResult:
        ...


class GeminiEnricher:
    """Gemini-backed enricher with bounded request time."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timeout: float = 10.0,
        temperature: float = 2.0,
        thinking_budget: int = 1000,
        base_url: str = GEMINI_BASE_URL,
    ) -> None:
        """
        Args:
            api_key: Gemini API key
            model: Model name used in the generateContent path
            timeout: Total seconds allowed per request
            temperature: Sampling temperature
            thinking_budget: Token budget for model thinking
            base_url: API root (overridable for tests)
        """
        if not api_key:
            raise ValueError("api_key is required for GeminiEnricher")

        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.thinking_budget = thinking_budget
        self.base_url = base_url.rstrip("/")
        self.session: Optional[aiohttp.ClientSession] = None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    async def connect(self) -> None:
        """Initialize HTTP session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            logger.info("enrichment_client_connected", model=self.model)

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session is not None:
            await self.session.close()
            self.session = None
            logger.info("enrichment_client_closed")

    def build_payload(self, names: Sequence[str]) -> Dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": f"Joined player: {', '.join(names)}"}],
                }
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "thinkingConfig": {"thinkingBudget": self.thinking_budget},
            },
        }

    @staticmethod
    def extract_text(data: Any) -> str:
        """
        Concatenate the non-thought text parts of the first candidate.

        Raises:
            ValueError: If the body does not have the generateContent shape
        """
        if not isinstance(data, dict):
            raise ValueError("response is not an object")

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise ValueError("candidates is not a list")
        if not candidates:
            return ""

        candidate = candidates[0]
        content = candidate.get("content") if isinstance(candidate, dict) else None
        if content is None:
            return ""
        if not isinstance(content, dict):
            raise ValueError("content is not an object")

        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise ValueError("parts is not a list")

        texts: List[str] = []
        for part in parts:
            if not isinstance(part, dict) or part.get("thought"):
                continue
            text = part.get("text")
            if isinstance(text, str):
                texts.append(text)
        return "".join(texts).strip()

    async def summarize(self, names: Sequence[str]) -> EnrichmentResult:
        """Ask Gemini for a join announcement. Never raises."""
        if not names:
            return EnrichmentResult(error="no player names")

        try:
            await self.connect()
            assert self.session is not None

            async with self.session.post(
                self.endpoint,
                json=self.build_payload(names),
                headers={"x-goog-api-key": self.api_key},
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.warning(
                        "enrichment_request_failed",
                        status=response.status,
                        error=error_text[:200],
                    )
                    return EnrichmentResult(error=f"HTTP {response.status}")

                data = await response.json(content_type=None)

            text = self.extract_text(data)

        except aiohttp.ClientError as e:
            logger.warning("enrichment_http_error", error=str(e))
            return EnrichmentResult(error=str(e) or type(e).__name__)
        except asyncio.TimeoutError:
            logger.warning("enrichment_timeout", timeout=self.timeout)
            return EnrichmentResult(error=f"timed out after {self.timeout:g}s")
        except ValueError as e:
            logger.warning("enrichment_malformed_response", error=str(e))
            return EnrichmentResult(error="malformed response")
        except Exception as e:
            logger.error("enrichment_unexpected_error", error=str(e), exc_info=True)
            return EnrichmentResult(error=str(e) or type(e).__name__)

        if not text:
            logger.warning("enrichment_empty_response", players=list(names))
            return EnrichmentResult(error="empty response")

        logger.debug("enrichment_succeeded", players=list(names), length=len(text))
        return EnrichmentResult(text=text)
