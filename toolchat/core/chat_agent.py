"""
Chat agent: one user turn through the tool-calling loop.

First completion -> tool-call extraction -> sequential execution -> at most
one follow-up completion with the tool results. Provider failures propagate
as ProviderError; the caller classifies them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .llm_provider import ConversationTurn, MediaAttachment, ProviderGateway
from .tool_calling import ToolCallExtractor, ToolExecutor, render_system_prompt

logger = logging.getLogger(__name__)


@dataclass
class ChatResult:
    """Final text and the record of executed tool calls, in detection order"""
    text: str
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "toolCalls": self.tool_calls}


class ChatAgent:
    """
    Runs a chat turn against one provider/model

    Usage:
        agent = ChatAgent()
        result = await agent.run("今天北京天气怎么样", history=[], provider="google",
                                 model="gemini-2.5-flash", enable_tools=True)
    """

    def __init__(
        self,
        gateway: Optional[ProviderGateway] = None,
        executor: Optional[ToolExecutor] = None,
        extractor: Optional[ToolCallExtractor] = None,
    ):
        self.gateway = gateway or ProviderGateway()
        self.executor = executor or ToolExecutor()
        self.extractor = extractor or ToolCallExtractor()

    async def run(
        self,
        message: str,
        history: Sequence[ConversationTurn] = (),
        provider: str = "google",
        model: str = "gemini-2.5-flash",
        media: Optional[MediaAttachment] = None,
        enable_tools: bool = True,
    ) -> ChatResult:
        """
        Args:
            message: user message
            history: prior turns, oldest first
            provider: provider id
            model: model id
            media: optional attachment for this message
            enable_tools: advertise tools and act on tool calls in the reply

        Returns:
            ChatResult

        Raises:
            ProviderError: from either completion
        """
        history = list(history)
        system_prompt = render_system_prompt(enable_tools)

        first = await self.gateway.call_provider(
            provider, model, message, history, media=media, system_prompt=system_prompt
        )

        if not enable_tools:
            return ChatResult(text=first)

        extraction = self.extractor.extract_with_details(first)
        if not extraction.success:
            return ChatResult(text=first)

        logger.info(
            f"Detected {len(extraction.tool_calls)} tool call(s) via {extraction.pattern_used}: "
            f"{[call.name for call in extraction.tool_calls]}"
        )
        batch = await self.executor.execute_batch(extraction.tool_calls)
        if batch.has_errors:
            logger.warning(f"Tool errors this turn: {[r.tool_name for r in batch.results if r.is_error]}")

        # Media went with the first round only
        followup_history = history + [
            ConversationTurn(role="user", content=message),
            ConversationTurn(role="assistant", content=first),
        ]
        second = await self.gateway.call_provider(
            provider,
            model,
            batch.to_followup_message(message),
            followup_history,
            system_prompt=render_system_prompt(False),
        )

        return ChatResult(text=second, tool_calls=batch.to_records())
