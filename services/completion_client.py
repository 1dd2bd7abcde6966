"""Chat-completion client for the LLM provider (OpenRouter-compatible API).

Issues one POST to `/chat/completions` and returns the first choice's
message content. Any non-2xx status, transport failure or missing content
is raised as `UpstreamError`; callers decide whether to retry.
"""

import time
from typing import Callable, Dict, List, Optional

import httpx

from core import config
from core.exceptions import ConfigurationError, UpstreamError
from core.logger import get_logger

logger = get_logger("services.completion_client")

DIET_SYSTEM_PROMPT = (
    "You are an expert nutritionist and dietitian. Generate personalized meal plans "
    "based on user requirements. Always respond with valid JSON only, no additional text."
)
WORKOUT_SYSTEM_PROMPT = (
    "You are an expert fitness trainer and exercise physiologist. Generate personalized "
    "workout plans based on user requirements. Always respond with valid JSON only, no additional text."
)

RETRYABLE_STATUSES = {429}


class CompletionClient:
    """Thin synchronous wrapper around an httpx client.

    Args:
        api_key: Bearer credential for the provider.
        base_url: Provider API root.
        default_model: Model used when a call does not name one.
        timeout: Request timeout in seconds.
        max_retries: Extra attempts on 429/5xx responses (0 disables).
        base_delay: First backoff delay in seconds, doubled per attempt.
        transport: Optional httpx transport, used by tests.
        sleep: Sleep function used between retries.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = config.OPENROUTER_BASE_URL,
        default_model: str = config.OPENROUTER_MODEL,
        timeout: float = config.OPENROUTER_TIMEOUT,
        max_retries: int = config.OPENROUTER_MAX_RETRIES,
        base_delay: float = 2.0,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep
        if not api_key:
            logger.warning("OPENROUTER_API_KEY not set. AI generation will fail.")
        self._client = httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key or ''}",
                "HTTP-Referer": config.OPENROUTER_APP_URL,
                "X-Title": config.OPENROUTER_APP_TITLE,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        top_p: float = 0.9,
    ) -> str:
        """Return the completion text for a system + user prompt pair.

        Raises:
            ConfigurationError: If no API key is configured.
            UpstreamError: On non-2xx responses, transport errors or an
                empty completion.
        """
        if not self.api_key:
            raise ConfigurationError(
                "LLM API key not configured. Please set OPENROUTER_API_KEY.",
                config_key="OPENROUTER_API_KEY",
            )

        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        payload = {
            "model": model or self.default_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "top_p": top_p,
        }

        attempt = 0
        while True:
            try:
                return self._post(payload, attempt)
            except UpstreamError as exc:
                status = exc.upstream_status
                retryable = status in RETRYABLE_STATUSES or (status is not None and status >= 500)
                if not retryable or attempt >= self.max_retries:
                    raise
                delay = self.base_delay * (2 ** attempt)
                logger.info("Upstream returned %s, retrying in %.1fs (attempt %s/%s)",
                            status, delay, attempt + 1, self.max_retries)
                self._sleep(delay)
                attempt += 1

    def _post(self, payload: dict, attempt: int) -> str:
        try:
            response = self._client.post("/chat/completions", json=payload)
        except httpx.HTTPError as exc:
            logger.error("LLM request failed: %s", exc)
            raise UpstreamError(f"LLM request failed: {exc}")

        if not response.is_success:
            message = _error_message(response)
            logger.error("LLM API error (attempt %s): status=%s message=%s",
                         attempt + 1, response.status_code, message)
            raise UpstreamError(f"LLM API error: {message}", upstream_status=response.status_code)

        try:
            body = response.json()
        except ValueError:
            raise UpstreamError("LLM response was not JSON", upstream_status=response.status_code)

        choices = body.get("choices") or []
        content = None
        if choices and isinstance(choices[0], dict):
            content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise UpstreamError("No content in LLM response", upstream_status=response.status_code)

        usage = body.get("usage") or {}
        logger.info("LLM tokens used: %s (attempt %s)", usage.get("total_tokens"), attempt + 1)
        return content.strip()

    def generate_diet_plan(self, prompt: str) -> str:
        return self.complete(DIET_SYSTEM_PROMPT, prompt, temperature=0.7, max_tokens=2500)

    def generate_workout_plan(self, prompt: str) -> str:
        return self.complete(WORKOUT_SYSTEM_PROMPT, prompt, temperature=0.6, max_tokens=3000)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if isinstance(error, str):
        return error
    return response.reason_phrase
