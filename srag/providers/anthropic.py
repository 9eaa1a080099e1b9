from __future__ import annotations
import time
from typing import Any, Dict, Optional

import httpx

from ..errors import ProviderError
from .types import GenerationRequest, GenerationResponse, TokenUsage

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider:
    name = "anthropic"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.anthropic.com/v1",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def build_payload(self, req: GenerationRequest) -> Dict[str, Any]:
        # The messages API has no frequency/presence penalties.
        payload: Dict[str, Any] = {
            "model": req.model,
            "max_tokens": req.max_tokens,
            "temperature": req.temperature,
            "messages": req.messages,
        }
        if req.top_p is not None:
            payload["top_p"] = req.top_p
        return payload

    async def generate(self, req: GenerationRequest) -> GenerationResponse:
        t0 = time.perf_counter()
        url = f"{self.base_url}/messages"
        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                r = await client.post(url, json=self.build_payload(req), headers=headers)
            except httpx.HTTPError as e:
                raise ProviderError(f"Anthropic request failed: {e}", provider=self.name) from e
        latency_ms = int((time.perf_counter() - t0) * 1000)
        if r.status_code != 200:
            raise ProviderError(
                f"Anthropic API error: {r.text[:500]}", provider=self.name, status_code=r.status_code
            )
        try:
            data = r.json()
        except ValueError as e:
            raise ProviderError("Anthropic API returned invalid JSON", provider=self.name) from e

        blocks = data.get("content") or []
        first = blocks[0] if blocks else None
        if not isinstance(first, dict) or first.get("type") != "text" or not isinstance(first.get("text"), str):
            raise ProviderError("Anthropic API returned non-text response", provider=self.name)

        usage = None
        raw_usage = data.get("usage")
        if isinstance(raw_usage, dict):
            input_tokens = int(raw_usage.get("input_tokens", 0))
            output_tokens = int(raw_usage.get("output_tokens", 0))
            usage = TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )
        return GenerationResponse(
            content=first["text"],
            model=data.get("model") or req.model,
            usage=usage,
            provider_meta={"latency_ms": latency_ms, "stop_reason": data.get("stop_reason")},
        )
