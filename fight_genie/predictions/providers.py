"""OpenAI and Anthropic prediction providers over httpx."""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from fight_genie.config import Settings
from fight_genie.errors import ExternalProviderError, TransientFetchError
from fight_genie.events.base import EventMeta, FightRow
from fight_genie.predictions.base import ModelName, PredictionProvider

log = structlog.get_logger()

SYSTEM_PROMPT = (
    "You are an MMA analyst. Answer with a single JSON object of the form "
    '{"fights": [{"fighter1": str, "fighter2": str, "predictedWinner": str, '
    '"method": str, "confidence": int}], '
    '"betting_analysis": {"parlays": "Parlay: include <fighter>, <fighter>", '
    '"props": "<fighter> by <method>, <fighter> by <method>"}} and nothing else.'
)


def build_prompt(event: EventMeta, fights: list[FightRow]) -> str:
    lines = [f"Event: {event.name} ({event.date}, {event.location})", "Fights:"]
    for fight in fights:
        lines.append(f"- {fight.fighter1} vs {fight.fighter2} ({fight.weight_class})")
    return "\n".join(lines)


def extract_json(provider: str, text: str) -> dict[str, Any]:
    """Pull the outermost JSON object out of a model reply."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ExternalProviderError(provider, "response contained no JSON object")
    try:
        payload = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ExternalProviderError(provider, f"invalid JSON in response: {exc}") from exc
    if not isinstance(payload, dict):
        raise ExternalProviderError(provider, "response JSON is not an object")
    return payload


class _HttpProvider(PredictionProvider):
    name: str

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._client.post(path, json=body)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            log.error("provider_request_failed", provider=self.name, status=status)
            raise ExternalProviderError(
                self.name, f"HTTP {status}", status_code=status
            ) from exc
        except httpx.HTTPError as exc:
            log.error("provider_request_failed", provider=self.name, error=str(exc))
            raise TransientFetchError(f"{self.name} request failed: {exc}") from exc
        return resp.json()


class OpenAIProvider(_HttpProvider):
    model = ModelName.GPT
    name = "openai"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(
            client
            or httpx.AsyncClient(
                base_url=settings.openai_base_url,
                timeout=settings.provider_timeout_seconds,
                headers={"Authorization": f"Bearer {settings.openai_api_key or ''}"},
            )
        )
        self._model_id = settings.openai_model

    async def generate(self, event: EventMeta, fights: list[FightRow]) -> dict[str, Any]:
        body = {
            "model": self._model_id,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(event, fights)},
            ],
            "response_format": {"type": "json_object"},
        }
        data = await self._post("/chat/completions", body)
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ExternalProviderError(self.name, "unexpected response shape") from exc
        log.info("prediction_generated", provider=self.name, event_id=event.event_id, fights=len(fights))
        return extract_json(self.name, text)


class AnthropicProvider(_HttpProvider):
    model = ModelName.CLAUDE
    name = "anthropic"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(
            client
            or httpx.AsyncClient(
                base_url=settings.anthropic_base_url,
                timeout=settings.provider_timeout_seconds,
                headers={
                    "x-api-key": settings.anthropic_api_key or "",
                    "anthropic-version": "2023-06-01",
                },
            )
        )
        self._model_id = settings.anthropic_model

    async def generate(self, event: EventMeta, fights: list[FightRow]) -> dict[str, Any]:
        body = {
            "model": self._model_id,
            "max_tokens": 4096,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": build_prompt(event, fights)}],
        }
        data = await self._post("/messages", body)
        try:
            text = "".join(
                block.get("text", "") for block in data["content"] if block.get("type") == "text"
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ExternalProviderError(self.name, "unexpected response shape") from exc
        log.info("prediction_generated", provider=self.name, event_id=event.event_id, fights=len(fights))
        return extract_json(self.name, text)


def build_providers(settings: Settings) -> dict[ModelName, PredictionProvider]:
    return {
        ModelName.GPT: OpenAIProvider(settings),
        ModelName.CLAUDE: AnthropicProvider(settings),
    }
