"""
Completion Client
Sends one prompt to an LLM provider and returns the raw completion text
"""

from typing import Optional

import httpx
import structlog

from shared.errors import ConfigurationError, UpstreamRequestError
from shared.resilience import check_response, create_rate_limit_retry

logger = structlog.get_logger()

PROVIDER_DEFAULTS = {
    "ollama": {"url": "http://localhost:11434", "model": "llama3.2:3b"},
    "openai": {"url": "https://api.openai.com/v1", "model": "gpt-4o-mini"},
    "anthropic": {"url": "https://api.anthropic.com/v1", "model": "claude-3-5-haiku-latest"},
}


class CompletionClient:
    """
    Provider-specific payload shaping around a single text completion.

    Any transport or HTTP failure is raised as UpstreamRequestError so the
    analyzer can fall back to basic detection.
    """

    def __init__(
        self,
        provider: str = "ollama",
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        temperature: float = 0.2,
        max_tokens: int = 4000,
        max_attempts: int = 3,
        backoff_multiplier: float = 2,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if provider not in PROVIDER_DEFAULTS:
            raise ConfigurationError(
                f"Unknown AI provider '{provider}' (expected one of {sorted(PROVIDER_DEFAULTS)})"
            )
        if provider != "ollama" and not api_key:
            raise ConfigurationError(f"AI provider '{provider}' requires an API key (AI_API_KEY)")

        defaults = PROVIDER_DEFAULTS[provider]
        self.provider = provider
        self.model = model or defaults["model"]
        self.base_url = (base_url or defaults["url"]).rstrip("/")
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = httpx.Client(timeout=httpx.Timeout(timeout, connect=30.0), transport=transport)
        self._post = create_rate_limit_retry(
            max_attempts=max_attempts,
            min_wait=backoff_multiplier,
            max_wait=60 * backoff_multiplier,
            multiplier=backoff_multiplier,
        )(self._post_once)

    def _build_request(self, prompt: str) -> tuple[str, dict, dict]:
        """URL, headers and JSON body for the configured provider"""
        if self.provider == "openai":
            return (
                f"{self.base_url}/chat/completions",
                {"Authorization": f"Bearer {self.api_key}"},
                {
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "temperature": self.temperature,
                    "max_tokens": self.max_tokens,
                },
            )
        if self.provider == "anthropic":
            return (
                f"{self.base_url}/messages",
                {"x-api-key": self.api_key, "anthropic-version": "2023-06-01"},
                {
                    "model": self.model,
                    "max_tokens": self.max_tokens,
                    "temperature": self.temperature,
                    "messages": [{"role": "user", "content": prompt}],
                },
            )
        return (
            f"{self.base_url}/api/generate",
            {},
            {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
            },
        )

    def _extract_text(self, data: dict) -> str:
        if self.provider == "openai":
            choices = data.get("choices") or [{}]
            return (choices[0].get("message") or {}).get("content") or ""
        if self.provider == "anthropic":
            return "".join(
                block.get("text") or ""
                for block in data.get("content") or []
                if block.get("type") == "text"
            )
        return data.get("response") or ""

    def _post_once(self, url: str, headers: dict, body: dict) -> httpx.Response:
        try:
            response = self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamRequestError(f"{self.provider} completion request failed: {e}") from e
        check_response(response, self.provider)
        return response

    def complete(self, prompt: str) -> str:
        """
        Send a prompt and return the raw completion text.

        Raises:
            UpstreamRequestError: network, HTTP or decoding failure
        """
        url, headers, body = self._build_request(prompt)
        logger.info("Requesting completion", provider=self.provider, model=self.model,
                    prompt_chars=len(prompt))
        response = self._post(url, headers, body)
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamRequestError(f"{self.provider} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise UpstreamRequestError(f"{self.provider} returned an unexpected body")
        try:
            text = self._extract_text(data)
        except (TypeError, AttributeError, KeyError, IndexError) as e:
            raise UpstreamRequestError(f"{self.provider} returned an unexpected body") from e
        if not isinstance(text, str):
            raise UpstreamRequestError(f"{self.provider} returned an unexpected body")
        logger.info("Completion received", provider=self.provider, response_chars=len(text))
        return text

    def close(self):
        self._client.close()


def create_completion_client(settings) -> CompletionClient:
    """Build a client from Settings"""
    return CompletionClient(
        provider=settings.ai_provider,
        model=settings.ai_model,
        base_url=settings.ai_url,
        api_key=settings.ai_api_key,
        timeout=settings.ai_timeout,
    )
