from __future__ import annotations
import time
from typing import Any, Dict, Optional

import httpx

from ..errors import ProviderError
from .types import GenerationRequest, GenerationResponse, TokenUsage


class OpenAIProvider:
    name = "openai"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
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
        payload: Dict[str, Any] = {
            "model": req.model,
            "messages": req.messages,
            "temperature": req.temperature,
            "max_tokens": req.max_tokens,
        }
        optional = {
            "top_p": req.top_p,
            "frequency_penalty": req.frequency_penalty,
            "presence_penalty": req.presence_penalty,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        return payload

    async def generate(self, req: GenerationRequest) -> GenerationResponse:
        t0 = time.perf_counter()
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                r = await client.post(url, json=self.build_payload(req), headers=headers)
            except httpx.HTTPError as e:
                raise ProviderError(f"OpenAI request failed: {e}", provider=self.name) from e
        latency_ms = int((time.perf_counter() - t0) * 1000)
        if r.status_code != 200:
            raise ProviderError(
                f"OpenAI API error: {r.text[:500]}", provider=self.name, status_code=r.status_code
            )
        try:
            data = r.json()
        except ValueError as e:
            raise ProviderError("OpenAI API returned invalid JSON", provider=self.name) from e

        choices = data.get("choices") or []
        content = ((choices[0] or {}).get("message") or {}).get("content") if choices else None
        if not isinstance(content, str) or not content:
            raise ProviderError("OpenAI API returned empty response", provider=self.name)

        usage = None
        raw_usage = data.get("usage")
        if isinstance(raw_usage, dict):
            usage = TokenUsage(
                prompt_tokens=int(raw_usage.get("prompt_tokens", 0)),
                completion_tokens=int(raw_usage.get("completion_tokens", 0)),
                total_tokens=int(raw_usage.get("total_tokens", 0)),
            )
        return GenerationResponse(
            content=content,
            model=data.get("model") or req.model,
            usage=usage,
            provider_meta={"latency_ms": latency_ms, "finish_reason": (choices[0] or {}).get("finish_reason")},
        )
