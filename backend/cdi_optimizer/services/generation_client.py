"""Generation-service adapters: OpenAI-compatible gateway and Claude Agent SDK."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Literal, Protocol

import httpx
from claude_agent_sdk import (
    AssistantMessage,
    CLIConnectionError,
    CLIJSONDecodeError,
    CLINotFoundError,
    ClaudeAgentOptions,
    ProcessError,
    ResultMessage,
    TextBlock,
    query,
)
from pydantic import BaseModel

from cdi_optimizer.config import Settings, settings
from cdi_optimizer.errors import (
    GenerationError,
    PipelineError,
    UpstreamQuotaError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

_QUOTA_PATTERN = re.compile(
    r"rate.?limit|quota|too many requests|\b429\b|credit|billing", re.IGNORECASE
)


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class GenerationClient(Protocol):
    async def complete(
        self, messages: list[ChatMessage], *, temperature: float, stage: str
    ) -> str: ...


def _preview(text: str, limit: int = 200) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


# --- OpenAI-compatible gateway ---


class GatewayGenerationClient:
    """Chat-completions client for an OpenAI-compatible HTTP gateway."""

    def __init__(
        self,
        api_key: str,
        *,
        url: str,
        model: str,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._model = model
        self._timeout = timeout
        self._transport = transport

    async def complete(
        self, messages: list[ChatMessage], *, temperature: float, stage: str
    ) -> str:
        body = {
            "model": self._model,
            "messages": [m.model_dump() for m in messages],
            "temperature": temperature,
        }
        logger.info(
            "[%s] gateway call: model=%s temperature=%.1f prompt_chars=%d",
            stage,
            self._model,
            temperature,
            sum(len(m.content) for m in messages),
        )
        try:
            async with asyncio.timeout(self._timeout):
                async with httpx.AsyncClient(
                    transport=self._transport, timeout=self._timeout
                ) as client:
                    resp = await client.post(
                        self._url,
                        headers={"Authorization": f"Bearer {self._api_key}"},
                        json=body,
                    )
        except (TimeoutError, httpx.TimeoutException):
            logger.warning("[%s] gateway call timed out after %.0fs", stage, self._timeout)
            raise UpstreamTimeoutError(stage)
        except httpx.HTTPError as e:
            raise GenerationError(
                code="UPSTREAM_UNAVAILABLE",
                message=f"Generation service request failed: {e}",
            )

        if resp.status_code == 429:
            raise UpstreamQuotaError(
                code="RATE_LIMITED",
                message="Rate limit exceeded, please try again later.",
                status_code=429,
            )
        if resp.status_code == 402:
            raise UpstreamQuotaError(
                code="PAYMENT_REQUIRED",
                message="Payment required. Please add credits.",
                status_code=402,
            )
        if resp.is_error:
            logger.error(
                "[%s] gateway error %d: %s", stage, resp.status_code, _preview(resp.text)
            )
            raise GenerationError(
                code="UPSTREAM_ERROR",
                message=f"AI gateway returned {resp.status_code}",
            )

        try:
            data = resp.json()
            content = data["choices"][0]["message"].get("content") or ""
            if not isinstance(content, str):
                raise TypeError(f"content is {type(content).__name__}")
            content = content.strip()
        except (ValueError, KeyError, IndexError, TypeError, AttributeError):
            raise GenerationError(
                code="UPSTREAM_ERROR",
                message="AI gateway returned an unexpected response body",
            )

        logger.info("[%s] gateway response: %d chars", stage, len(content))
        logger.debug("[%s] response preview: %s", stage, _preview(content))
        return content


# --- Claude Agent SDK ---


class ClaudeAgentGenerationClient:
    """Single-turn completion through the Claude Agent SDK.

    The SDK has no sampling control, so ``temperature`` is only logged.
    """

    def __init__(self, *, model: str, timeout: float) -> None:
        self._model = model
        self._timeout = timeout

    async def complete(
        self, messages: list[ChatMessage], *, temperature: float, stage: str
    ) -> str:
        system_prompt = "\n\n".join(m.content for m in messages if m.role == "system")
        prompt = "\n\n".join(
            m.content if m.role == "user" else f"ASSISTANT:\n{m.content}"
            for m in messages
            if m.role != "system"
        )
        options = ClaudeAgentOptions(
            system_prompt=system_prompt or None,
            model=self._model,
            max_turns=1,
            allowed_tools=[],
            permission_mode="bypassPermissions",
        )
        logger.info(
            "[%s] agent call: model=%s temperature=%.1f (not forwarded) prompt_chars=%d",
            stage,
            self._model,
            temperature,
            len(prompt),
        )

        texts: list[str] = []
        result_text: str | None = None
        try:
            async with asyncio.timeout(self._timeout):
                async for message in query(prompt=prompt, options=options):
                    if isinstance(message, AssistantMessage):
                        texts.extend(
                            b.text for b in message.content if isinstance(b, TextBlock)
                        )
                    elif isinstance(message, ResultMessage):
                        logger.info(
                            "[%s] ResultMessage: duration=%dms cost=$%.4f is_error=%s",
                            stage,
                            message.duration_ms,
                            message.total_cost_usd or 0,
                            message.is_error,
                        )
                        if message.is_error:
                            raise _classify_agent_error(message.result)
                        result_text = message.result
        except TimeoutError:
            logger.warning("[%s] agent call timed out after %.0fs", stage, self._timeout)
            raise UpstreamTimeoutError(stage)
        except PipelineError:
            raise
        except CLINotFoundError:
            raise GenerationError(
                code="CLI_NOT_FOUND",
                message="Claude Code CLI not found. Ensure it is installed.",
            )
        except CLIConnectionError as e:
            raise GenerationError(
                code="CLI_CONNECTION_ERROR",
                message=f"Failed to connect to Claude CLI: {e}",
            )
        except ProcessError as e:
            raise _classify_agent_error(str(e), default_code="PROCESS_ERROR")
        except CLIJSONDecodeError as e:
            raise GenerationError(
                code="JSON_DECODE_ERROR",
                message=f"Failed to parse agent response: {e}",
            )

        if result_text is None and texts:
            result_text = "".join(texts)
        if result_text is None:
            raise GenerationError(
                code="NO_RESULT",
                message="Agent did not return a result message",
            )
        result_text = result_text.strip()
        logger.debug("[%s] response preview: %s", stage, _preview(result_text))
        return result_text


def _classify_agent_error(
    detail: str | None, *, default_code: str = "AGENT_ERROR"
) -> PipelineError:
    detail = detail or "Agent returned an error"
    if _QUOTA_PATTERN.search(detail):
        return UpstreamQuotaError(code="RATE_LIMITED", message=detail, status_code=429)
    return GenerationError(code=default_code, message=detail)


def build_generation_client(config: Settings = settings) -> GenerationClient:
    """Build a request-scoped client; the credential is read here, per request."""
    if config.generation_backend == "claude_agent":
        return ClaudeAgentGenerationClient(
            model=config.claude_model, timeout=config.generation_timeout_seconds
        )
    if not config.ai_gateway_api_key:
        raise GenerationError(
            code="NOT_CONFIGURED",
            message="AI gateway API key not configured (AI_GATEWAY_API_KEY).",
        )
    return GatewayGenerationClient(
        config.ai_gateway_api_key,
        url=config.ai_gateway_url,
        model=config.ai_model,
        timeout=config.generation_timeout_seconds,
    )
