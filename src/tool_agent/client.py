# client.py
# Thin wrapper over the OpenAI-compatible chat completions endpoint.
# One call in, one assistant string out. No retries, no streaming.

from openai import OpenAI, OpenAIError

from tool_agent.config import Settings
from tool_agent.log import get_logger

log = get_logger(__name__)


class CompletionError(Exception):
    """Raised when the completion service call fails or times out."""


class CompletionClient:
    """
    Sends the full conversation to the hosted model in forced JSON-object mode.

    Example:
        client = CompletionClient(load_settings())
        raw = client.complete([{"role": "user", "content": "hi"}], timeout=30)
    """

    def __init__(self, settings: Settings, client: OpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or OpenAI(
            base_url=settings.base_url,
            api_key=settings.api_key,
            max_retries=settings.max_retries,
        )

    @property
    def model(self) -> str:
        return self._settings.model

    def complete(self, messages: list[dict], timeout: float | None = None) -> str:
        log.debug("completion.request", model=self.model, messages=len(messages), timeout=timeout)
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                response_format={"type": "json_object"},
                messages=messages,
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_tokens,
                timeout=timeout,
            )
        except OpenAIError as exc:
            log.error("completion.failed", model=self.model, error=str(exc))
            raise CompletionError(f"Completion request failed: {exc}") from exc

        if not response.choices:
            raise CompletionError("Completion service returned no choices.")
        return response.choices[0].message.content or ""
