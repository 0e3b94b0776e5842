from typing import Any, Dict, List, Optional

import openai
import structlog
from openai import AsyncOpenAI

from staffplan.config import Settings
from staffplan.utils.errors import TransportError, TransportErrorKind

logger = structlog.get_logger(__name__)

Message = Dict[str, Any]


def classify_openai_error(exc: Exception) -> TransportErrorKind:
    """Map an `openai` SDK exception onto a transport error kind."""
    # APITimeoutError subclasses APIConnectionError
    if isinstance(exc, openai.APITimeoutError):
        return TransportErrorKind.TIMEOUT
    if isinstance(exc, openai.APIConnectionError):
        return TransportErrorKind.CONNECTION
    if isinstance(exc, openai.RateLimitError):
        return TransportErrorKind.RATE_LIMIT
    if getattr(exc, "code", None) == "context_length_exceeded":
        return TransportErrorKind.CONTEXT_LENGTH
    if isinstance(exc, openai.BadRequestError) and "maximum context length" in str(exc).lower():
        return TransportErrorKind.CONTEXT_LENGTH
    return TransportErrorKind.API_ERROR


class LLMClient:
    """
    Thin wrapper around the OpenAI chat-completions API.

    Transport concerns (timeout, SDK-level retries) are configured once on the
    underlying AsyncOpenAI client. Every call is tagged with an `op` name used
    for logging.
    """

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.settings = settings
        self.reasoning_model = settings.reasoning_model
        self.parser_model = settings.parser_model
        self.chat_model = settings.chat_model
        if client is None:
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.llm_timeout_seconds,
                max_retries=settings.llm_max_retries,
            )
        self._client = client

    async def complete(
        self,
        messages: List[Message],
        *,
        op: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        kwargs: Dict[str, Any] = {"model": model or self.chat_model, "messages": messages}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            resp = await self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            kind = classify_openai_error(e)
            logger.error("llm_call_failed", op=op, llm_model=kwargs["model"], kind=kind.value)
            raise TransportError(kind, str(e), op=op) from e

        usage = getattr(resp, "usage", None)
        logger.info(
            "llm_call_completed",
            op=op,
            llm_model=kwargs["model"],
            prompt_tokens=getattr(usage, "prompt_tokens", 0) if usage else 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) if usage else 0,
        )
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""

    async def reason(self, prompt: str, *, op: str, max_tokens: Optional[int] = None) -> str:
        """Free-form reasoning call: a single user turn, no output format imposed."""
        return await self.complete(
            [{"role": "user", "content": prompt}],
            op=op,
            model=self.reasoning_model,
            max_tokens=max_tokens or self.settings.reasoning_max_tokens,
        )

    async def extract_structured(self, messages: List[Message], *, op: str) -> str:
        """Structured-extraction call: `messages` carry the schema instruction and the text."""
        return await self.complete(
            messages,
            op=op,
            model=self.parser_model,
            temperature=0.2,
            max_tokens=self.settings.parser_max_tokens,
        )

    async def repair(self, messages: List[Message], *, op: str) -> str:
        return await self.complete(messages, op=op, model=self.parser_model, temperature=0.0)

    async def chat(self, messages: List[Message], *, op: str = "chat") -> str:
        return await self.complete(
            messages,
            op=op,
            model=self.chat_model,
            temperature=0.2,
            max_tokens=self.settings.chat_max_tokens,
        )

    async def close(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()
