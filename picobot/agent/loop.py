"""Core agent loop: one inbound message in, exactly one reply out."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

from loguru import logger

from ..bus.events import InboundMessage, OutboundMessage
from ..bus.queue import MessageBus
from ..errors import BusClosedError, ProviderError
from ..providers.base import LLMProvider, LLMResponse, ToolCallRequest
from ..session.manager import Session, SessionManager
from ..tools.base import TurnContext
from ..tools.registry import ToolRegistry
from .context import ContextBuilder, format_tool_result
from .memory import MemoryStore

REMEMBER_PATTERN = re.compile(r"^remember(?:\s+to)?\s+(.+)$", re.IGNORECASE | re.DOTALL)

REMEMBER_ACK = "OK, I've remembered that."
PROVIDER_ERROR_REPLY = "Sorry, I encountered an error while processing your request."
EMPTY_REPLY = "I've completed processing but have no response to give."

# How many recent notes are offered to the ranker each turn.
MEMORY_POOL_SIZE = 20


class AgentLoop:
    """Main agent loop: receive messages, process with LLM + tools, respond.

    Turns are processed strictly one at a time. Each turn either takes the
    "remember" shortcut (no LLM call) or runs a bounded tool-calling loop;
    both end by recording the exchange in the session and producing exactly
    one reply.
    """

    def __init__(
        self,
        bus: MessageBus,
        provider: LLMProvider,
        tools: ToolRegistry,
        sessions: SessionManager,
        memory: MemoryStore,
        context: ContextBuilder | None = None,
        model: str = "",
        max_iterations: int = 20,
        recent_memories: int = 5,
        max_tokens: int = 8192,
        temperature: float = 0.7,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._bus = bus
        self._provider = provider
        self._tools = tools
        self._sessions = sessions
        self._memory = memory
        self._context = context or ContextBuilder(memory.memory_dir.parent, top_k=recent_memories)
        self._model = model or provider.get_default_model()
        self._max_iterations = max_iterations
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def model(self) -> str:
        return self._model

    @property
    def memory(self) -> MemoryStore:
        return self._memory

    async def run(self) -> None:
        """Consume inbound messages until cancelled or the bus is closed."""
        logger.info(f"Agent loop started (model: {self._model})")
        try:
            while True:
                try:
                    message = await self._bus.consume_inbound()
                except BusClosedError:
                    logger.info("Inbound queue closed, stopping agent loop")
                    return

                logger.info(f"Processing message from {message.channel}:{message.sender_id}")
                try:
                    reply = await self._process_turn(message)
                except Exception as e:
                    logger.exception(f"Error processing message from {message.channel}: {e}")
                    reply = PROVIDER_ERROR_REPLY
                    self._record_turn(message, reply)
                self._send_response(message, reply)
        finally:
            logger.info("Agent loop stopped")

    async def process_direct(
        self,
        content: str,
        timeout: float = 60.0,
        channel: str = "cli",
        chat_id: str = "direct",
    ) -> str:
        """Process one message outside the bus and return the reply.

        Raises ProviderError if the provider fails and TimeoutError if the
        turn does not finish within ``timeout`` seconds.
        """
        message = InboundMessage(channel=channel, sender_id="user", chat_id=chat_id, content=content)
        return await asyncio.wait_for(
            self._process_turn(message, propagate_provider_errors=True),
            timeout=timeout,
        )

    async def _process_turn(
        self, message: InboundMessage, propagate_provider_errors: bool = False
    ) -> str:
        session = self._sessions.get_or_create(message.session_key)

        match = REMEMBER_PATTERN.match(message.content.strip())
        if match:
            reply = await self._remember(match.group(1))
        else:
            try:
                reply = await self._react_loop(message, session)
            except ProviderError as e:
                if propagate_provider_errors:
                    raise
                logger.error(f"Provider error, abandoning turn: {e}")
                reply = PROVIDER_ERROR_REPLY

        self._record_turn(message, reply)
        return reply

    def _record_turn(self, message: InboundMessage, reply: str) -> None:
        session = self._sessions.get_or_create(message.session_key)
        session.add_message("user", message.content)
        session.add_message("assistant", reply)
        try:
            self._sessions.save(session)
        except OSError as e:
            logger.error(f"Failed to save session {session.key}: {e}")

    async def _remember(self, note: str) -> str:
        try:
            await self._memory.append_today(note)
        except OSError as e:
            logger.error(f"Error appending to memory: {e}")
        return REMEMBER_ACK

    async def _react_loop(self, message: InboundMessage, session: Session) -> str:
        """Run the bounded LLM -> tools -> LLM loop and return the final reply."""
        turn = TurnContext(channel=message.channel, chat_id=message.chat_id)

        try:
            memory_context = await self._memory.get_memory_context()
        except (OSError, ValueError) as e:
            logger.warning(f"Memory context unavailable: {e}")
            memory_context = ""
        memories = self._memory.recent(MEMORY_POOL_SIZE)
        messages = self._context.build_messages(
            session.history,
            message.content,
            message.channel,
            message.chat_id,
            memory_context,
            memories,
        )
        tool_defs = self._tools.definitions()

        last_tool_result = ""
        for iteration in range(self._max_iterations):
            logger.debug(f"Tool iteration {iteration + 1}/{self._max_iterations}")
            response = await self._chat(messages, tool_defs)

            if not response.has_tool_calls:
                return response.content or last_tool_result or EMPTY_REPLY

            messages.append(response.assistant_message())
            for tc in response.tool_calls:
                result = await self._execute_tool(tc, turn)
                last_tool_result = result
                messages.append(format_tool_result(tc.id, tc.name, result))

        logger.warning(f"Hit max iterations ({self._max_iterations})")
        return last_tool_result or EMPTY_REPLY

    async def _chat(
        self, messages: list[dict[str, Any]], tool_defs: list[dict[str, Any]]
    ) -> LLMResponse:
        try:
            return await self._provider.chat(
                messages=messages,
                tools=tool_defs,
                model=self._model,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"{type(e).__name__}: {e}") from e

    async def _execute_tool(self, tc: ToolCallRequest, turn: TurnContext) -> str:
        logger.info(f"Executing tool: {tc.name}({json.dumps(tc.arguments)[:100]})")
        try:
            return await self._tools.execute(tc.name, tc.arguments, turn)
        except Exception as e:
            # The model sees the failure and decides what to do next.
            logger.warning(f"Tool {tc.name} failed: {e}")
            return f"(tool error) {e}"

    def _send_response(self, original: InboundMessage, content: str) -> None:
        """Send a reply back through the bus (best-effort)."""
        try:
            self._bus.publish_outbound(
                OutboundMessage(
                    channel=original.channel,
                    chat_id=original.chat_id,
                    content=content,
                )
            )
        except BusClosedError:
            logger.warning(f"Bus closed, reply to {original.session_key} not delivered")
