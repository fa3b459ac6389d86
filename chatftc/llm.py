"""OpenAI chat model client."""

from collections.abc import AsyncIterator

from openai import AsyncOpenAI, OpenAIError

from .config import config
from .errors import ModelError

logger = config.get_logger(__name__)


class ChatModel:
    """Generates answers with the OpenAI chat completions API."""

    def __init__(  # noqa: PLR0913
        self,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> None:
        """Initialize the chat model client.

        Args:
            api_key: OpenAI API key. If None, reads from OPENAI_API_KEY.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            temperature: Sampling temperature. If None, uses
                config.CHAT_TEMPERATURE.
            max_tokens: Completion length limit. If None, uses
                config.CHAT_MAX_TOKENS.
            timeout: Per-request timeout in seconds. If None, uses
                config.CHAT_TIMEOUT.
            max_retries: Retries performed by the OpenAI client. If None,
                uses config.CHAT_MAX_RETRIES.
        """
        default_headers = config.get_api_headers()
        self.client = AsyncOpenAI(
            api_key=api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
            timeout=timeout if timeout is not None else config.CHAT_TIMEOUT,
            max_retries=(
                max_retries if max_retries is not None else config.CHAT_MAX_RETRIES
            ),
        )
        self.model = model or config.CHAT_MODEL
        self.temperature = (
            temperature if temperature is not None else config.CHAT_TEMPERATURE
        )
        self.max_tokens = max_tokens or config.CHAT_MAX_TOKENS

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Return the full answer for a message list.

        Raises:
            ModelError: If the API call fails.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except OpenAIError as exc:
            logger.exception("Error communicating with the chat model")
            msg = f"Chat completion failed: {exc}"
            raise ModelError(msg) from exc
        answer = response.choices[0].message.content
        return answer.strip() if answer else ""

    async def stream(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        """Yield answer fragments as the model produces them.

        The iterator is finite and cannot be restarted.

        Raises:
            ModelError: If the call fails before or during streaming.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                stream=True,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                fragment = chunk.choices[0].delta.content
                if fragment:
                    logger.debug("Model fragment: %s", fragment)
                    yield fragment
        except OpenAIError as exc:
            logger.exception("Error streaming from the chat model")
            msg = f"Chat completion stream failed: {exc}"
            raise ModelError(msg) from exc
