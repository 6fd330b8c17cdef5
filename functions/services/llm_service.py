"""LLM service for the scope estimator.

Provides LangChain/OpenAI access for the intent oracle. Calls are made once;
there is no retry at this layer.
"""

import asyncio
import json
from typing import Dict, Any, Optional, List

import structlog
from langchain_openai import ChatOpenAI
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from config.settings import settings
from config.errors import LLMError, ErrorCode

logger = structlog.get_logger()


class LLMService:
    """Thin wrapper around ChatOpenAI with token tracking and error mapping."""

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ):
        """Initialize LLMService.

        Args:
            model: Model name (default from settings).
            temperature: Temperature (default from settings).
            api_key: OpenAI API key (default from settings).
            timeout_seconds: Per-call timeout (default from settings).
        """
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key or settings.openai_api_key
        self.timeout_seconds = timeout_seconds or settings.classifier_timeout_seconds

        self._client: Optional[ChatOpenAI] = None
        self._total_tokens_used = 0

    @property
    def client(self) -> ChatOpenAI:
        """Get LangChain ChatOpenAI client (lazy initialization)."""
        if self._client is None:
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key
            )
        return self._client

    @property
    def total_tokens_used(self) -> int:
        """Get total tokens used across all calls."""
        return self._total_tokens_used

    async def generate(
        self,
        messages: List[BaseMessage],
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response from the LLM.

        Args:
            messages: List of LangChain messages.
            max_tokens: Optional max tokens for response.

        Returns:
            Dict with content and token usage.

        Raises:
            LLMError: If the call fails or exceeds the timeout.
        """
        kwargs = {}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await asyncio.wait_for(
                self.client.ainvoke(messages, **kwargs),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("llm_timeout", model=self.model, timeout_seconds=self.timeout_seconds)
            raise LLMError(
                message=f"LLM call timed out after {self.timeout_seconds}s",
                code=ErrorCode.LLM_TIMEOUT,
                details={"timeout_seconds": self.timeout_seconds}
            )
        except Exception as e:
            error_msg = str(e)
            lowered = error_msg.lower()

            if "rate_limit" in lowered:
                raise LLMError(
                    message="OpenAI rate limit exceeded",
                    code=ErrorCode.LLM_RATE_LIMIT,
                    details={"original_error": error_msg}
                )
            elif "context_length" in lowered or "maximum context" in lowered:
                raise LLMError(
                    message="Input too long for model context",
                    code=ErrorCode.LLM_CONTEXT_TOO_LONG,
                    details={"original_error": error_msg}
                )
            raise LLMError(
                message=f"LLM generation failed: {error_msg}",
                details={"original_error": error_msg}
            )

        tokens_used = 0
        if hasattr(response, "response_metadata"):
            usage = response.response_metadata.get("token_usage", {})
            tokens_used = usage.get("total_tokens", 0)
            self._total_tokens_used += tokens_used

        logger.info(
            "llm_generated",
            model=self.model,
            tokens_used=tokens_used,
            content_length=len(response.content)
        )

        return {
            "content": response.content,
            "tokens_used": tokens_used
        }

    async def generate_with_system_prompt(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response with a system prompt."""
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_message)
        ]
        return await self.generate(messages, max_tokens)

    async def generate_json(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a JSON response.

        Adds JSON formatting instructions to the system prompt and strips
        markdown code fences from the reply.

        Returns:
            Dict with parsed JSON content and token usage.

        Raises:
            LLMError: If the response is not a JSON object.
        """
        json_prompt = f"""{system_prompt}

IMPORTANT: You MUST respond with valid JSON only. No markdown, no explanation, just JSON."""

        result = await self.generate_with_system_prompt(
            json_prompt,
            user_message,
            max_tokens
        )

        content = result["content"].strip()
        if content.startswith("```json"):
            content = content[7:]
        if content.startswith("```"):
            content = content[3:]
        if content.endswith("```"):
            content = content[:-3]

        try:
            parsed = json.loads(content.strip())
        except json.JSONDecodeError as e:
            raise LLMError(
                message="LLM did not return valid JSON",
                details={
                    "parse_error": str(e),
                    "raw_content": result["content"][:500]
                }
            )

        if not isinstance(parsed, dict):
            raise LLMError(
                message="LLM returned JSON that is not an object",
                details={"raw_content": result["content"][:500]}
            )

        return {
            "content": parsed,
            "tokens_used": result["tokens_used"]
        }
