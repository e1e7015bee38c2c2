"""
OpenRouter LLM Client

Chat-completions access through OpenRouter's unified API. One client is
created at application startup and shared by every request, so HTTP
connections are pooled across the analysis, risk and paraphrase calls.
"""

import httpx
import json
import logging
from typing import Optional

from therapy_copilot.config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmptyCompletionError(ValueError):
    """The model returned no message content."""


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code block, if the model added one."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


class OpenRouterClient:
    """Client for the OpenRouter API with connection pooling."""

    def __init__(self, settings: Optional[Settings] = None, model: Optional[str] = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.openrouter_base_url.rstrip("/")
        self.model = model or self.settings.openrouter_model
        self.headers = {
            "Authorization": f"Bearer {self.settings.openrouter_api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": "https://therapy-copilot.local",
            "X-Title": "Therapy Copilot",
        }
        self._http: Optional[httpx.AsyncClient] = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(120.0, connect=10.0),
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=20,
                    keepalive_expiry=30.0,
                ),
                http2=True,
            )
        return self._http

    async def aclose(self):
        """Close pooled connections (call on app shutdown)."""
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
        self._http = None

    async def complete(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        response_format: Optional[dict] = None,
    ) -> dict:
        """
        Generate a completion from OpenRouter.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Override default model
            temperature: Sampling temperature (lower = more deterministic)
            max_tokens: Maximum tokens in response
            response_format: Optional format specification (e.g., {"type": "json_object"})

        Returns:
            Full API response dict
        """
        payload = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if response_format:
            payload["response_format"] = response_format

        response = await self._client().post(
            f"{self.base_url}/chat/completions",
            headers=self.headers,
            json=payload,
        )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _message_content(result: dict) -> str:
        choices = result.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            raise EmptyCompletionError("Empty response from model")
        return content

    async def complete_text(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a completion and return just the assistant text."""
        result = await self.complete(
            messages=messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return self._message_content(result)

    async def complete_json(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 4000,
    ):
        """
        Generate a JSON-structured completion.

        The last message should ask for JSON output; if it does not, the
        instruction is appended. Returns the parsed JSON value, which may be
        a list when the prompt asks for an array.

        Raises:
            EmptyCompletionError: the model returned no content
            json.JSONDecodeError: the content is not valid JSON
        """
        enhanced_messages = [dict(m) for m in messages]
        last_msg = enhanced_messages[-1]["content"]
        if "json" not in last_msg.lower():
            enhanced_messages[-1]["content"] = last_msg + "\n\nRespond with valid JSON only."

        result = await self.complete(
            messages=enhanced_messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )

        content = self._message_content(result)
        return json.loads(strip_code_fences(content))

    async def health_check(self) -> bool:
        """Check if the OpenRouter API is reachable."""
        try:
            response = await self._client().get(
                f"{self.base_url}/models",
                headers=self.headers,
            )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"OpenRouter health check failed: {e}")
            return False
