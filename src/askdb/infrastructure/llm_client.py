"""
LLM client for OpenRouter using LangChain.

OpenRouter speaks the OpenAI chat completions protocol, so the client is a
LangChain ChatOpenAI pointed at the OpenRouter base URL. It knows nothing
about query plans: prompt construction and reply parsing live in
PlanGenerationRepository.
"""

from typing import Any, Dict, List, Optional
from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage, SystemMessage, BaseMessage
from pydantic import SecretStr

from ..config import LLMConfig
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..utils.token_utils import InputValidator
from ..domain.errors import LLMError


logger = get_module_logger()

# OpenAI-style structured output switch, honoured by most OpenRouter providers
JSON_OBJECT_FORMAT = {"type": "json_object"}


class LLMClient:
    """
    Async chat client for plan generation.

    Features:
    - One ChatOpenAI instance per process, created by connect()
    - Per-call overrides (model, temperature, max tokens, JSON mode) via bind()
    - Transport retries and timeout delegated to the OpenAI SDK
    - Prompt size checked against LLM__MAX_INPUT_CHARS before any request

    Usage:
        client = LLMClient(settings.llm)
        await client.connect()
        reply = await client.generate(prompt, system_prompt=SYSTEM_PROMPT, json_mode=True)
        await client.close()
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._llm: Optional[ChatOpenAI] = None
        self._is_connected = False

        logger.info(
            "LLMClient initialized",
            default_model=config.default_model,
            base_url=config.base_url,
            json_mode=config.json_mode
        )

    async def connect(self) -> None:
        """
        Build the ChatOpenAI client.

        No request is sent; a bad API key shows up on the first generate().

        Raises:
            LLMError: If the client cannot be constructed
        """
        if self._is_connected:
            logger.warning("LLM client already connected")
            return

        trace_id = current_trace_id()

        try:
            # max_completion_tokens replaces the deprecated max_tokens argument
            self._llm = ChatOpenAI(
                model=self.config.default_model,
                api_key=SecretStr(self.config.openrouter_api_key),
                base_url=self.config.base_url,
                temperature=self.config.temperature,
                top_p=self.config.top_p,
                max_completion_tokens=self.config.max_tokens,
                timeout=self.config.timeout_seconds,
                max_retries=self.config.max_retries
            )
        except Exception as e:
            error_msg = f"Failed to initialize LLM client: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise LLMError(error_msg) from e

        self._is_connected = True
        logger.info("LLM client ready", model=self.config.default_model, trace_id=trace_id)

    async def close(self) -> None:
        """Drop the client; ChatOpenAI holds no resources that need closing."""
        self._is_connected = False
        self._llm = None
        logger.info("LLM client closed", trace_id=current_trace_id())

    def is_connected(self) -> bool:
        return self._is_connected and self._llm is not None

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
        json_mode: bool = False
    ) -> str:
        """
        Send one chat turn and return the reply text.

        Args:
            prompt: User message
            system_prompt: Optional system message
            temperature: Override of LLM__TEMPERATURE
            max_tokens: Override of LLM__MAX_TOKENS
            model: Override of LLM__DEFAULT_MODEL
            json_mode: Ask for a JSON object reply. Providers require the word
                "JSON" somewhere in the messages for this to take effect.

        Returns:
            Reply content as a string

        Raises:
            LLMError: Not connected, input too large, request failed, or empty reply
        """
        if not self.is_connected() or self._llm is None:
            raise LLMError("LLM client is not connected")

        try:
            InputValidator.validate_total_chars(
                prompt=prompt,
                system_prompt=system_prompt,
                max_chars=self.config.max_input_chars
            )
        except ValueError as e:
            raise LLMError(str(e), details={"max_input_chars": self.config.max_input_chars}) from e

        trace_id = current_trace_id()

        messages: List[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        overrides: Dict[str, Any] = {}
        if model is not None:
            overrides["model"] = model
        if temperature is not None:
            overrides["temperature"] = temperature
        if max_tokens is not None:
            overrides["max_completion_tokens"] = max_tokens
        if json_mode:
            overrides["response_format"] = JSON_OBJECT_FORMAT

        # bind() returns a new runnable; the shared client is never mutated
        llm = self._llm.bind(**overrides) if overrides else self._llm

        logger.info(
            "Requesting LLM completion",
            prompt_length=len(prompt),
            system_prompt_length=len(system_prompt or ""),
            json_mode=json_mode,
            overrides=sorted(overrides),
            trace_id=trace_id
        )

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            error_msg = f"LLM generation failed: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise LLMError(error_msg) from e

        content = str(response.content) if response is not None and response.content else ""
        if not content.strip():
            logger.error("LLM returned an empty completion", trace_id=trace_id)
            raise LLMError("LLM returned empty response")

        logger.info("LLM completion received", response_length=len(content), trace_id=trace_id)
        return content
