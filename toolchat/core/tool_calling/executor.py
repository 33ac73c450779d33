"""
Tool Executor

Dispatches tool calls to the tool implementations. Failures never escape:
every outcome, including errors, comes back as a result string.
"""

import time
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx

from toolchat.tools import (
    BaseTool,
    ToolName,
    WeatherTool,
    WebSearchTool,
    CalculatorTool,
    CurrentTimeTool,
)
from .base import ToolCall, ToolCallBatch, ToolExecutionResult
from .text_extractor import ToolCallExtractor

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Executes tool calls

    Responsible for:
    1. Closed dispatch: every ToolName maps to exactly one tool instance
    2. Per-call failure isolation (errors become result strings)
    3. Sequential batch execution in detection order
    4. Logging

    Usage:
        executor = ToolExecutor()

        # One call
        text = await executor.execute("calculate", {"expression": "2+3*4"})

        # A batch
        batch = await executor.execute_batch(tool_calls)
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        search_api_key: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tools: Optional[Dict[ToolName, BaseTool]] = None,
    ):
        """
        Args:
            http_client: shared client for weather/search lookups
            search_api_key: overrides TAVILY_API_KEY
            clock: time source for get_current_time
            tools: explicit tool instances (replace the defaults per name)
        """
        self._tools: Dict[ToolName, BaseTool] = {
            ToolName.GET_WEATHER: WeatherTool(http_client=http_client),
            ToolName.SEARCH_WEB: WebSearchTool(http_client=http_client, api_key=search_api_key),
            ToolName.CALCULATE: CalculatorTool(),
            ToolName.GET_CURRENT_TIME: CurrentTimeTool(clock=clock),
        }
        if tools:
            self._tools.update(tools)

        missing = [name.value for name in ToolName if name not in self._tools]
        if missing:
            raise ValueError(f"No implementation for tools: {missing}")

        self._extractor = ToolCallExtractor()

    def resolve(self, tool_name: str) -> Optional[BaseTool]:
        """Map a name from model output to a tool, or None if unknown"""
        try:
            return self._tools[ToolName(tool_name)]
        except ValueError:
            return None

    async def execute(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> str:
        """
        Run one tool by name

        Args:
            tool_name: name from the model
            arguments: argument mapping

        Returns:
            Result string (JSON or text); errors are encoded, never raised
        """
        tool = self.resolve(tool_name)
        if tool is None:
            logger.warning(f"Unknown tool requested: {tool_name}")
            return f"错误: 未知工具 '{tool_name}'"

        arguments = arguments if isinstance(arguments, dict) else {}

        try:
            return await tool.execute(**arguments)
        except Exception as e:
            # CancelledError is a BaseException and passes through
            logger.exception(f"Tool execution failed: {tool_name}")
            return f"工具执行错误: {e}"

    async def execute_call(self, call: ToolCall) -> ToolExecutionResult:
        """
        Run a ToolCall and wrap the outcome

        Args:
            call: ToolCall to run

        Returns:
            ToolExecutionResult
        """
        start_time = time.time()
        result = await self.execute(call.name, call.arguments)
        execution_time = (time.time() - start_time) * 1000

        logger.info(f"Tool {call.name} finished in {execution_time:.1f}ms: {result[:200]}")
        return ToolExecutionResult(
            tool_name=call.name,
            arguments=call.arguments,
            result=result,
            tool_call_id=call.id,
            execution_time_ms=execution_time
        )

    async def execute_batch(self, calls: List[ToolCall]) -> ToolCallBatch:
        """
        Run calls one at a time, in the order they were detected

        Args:
            calls: ToolCall list

        Returns:
            ToolCallBatch with results
        """
        batch = ToolCallBatch(calls=list(calls))

        if not calls:
            batch.is_executed = True
            return batch

        for call in calls:
            batch.add_result(await self.execute_call(call))

        return batch

    async def execute_from_text(self, text: str) -> ToolCallBatch:
        """
        Extract tool calls from completion text and run them

        Args:
            text: completion text

        Returns:
            ToolCallBatch (empty when the text holds no tool call)
        """
        calls = self._extractor.extract(text)

        if not calls:
            logger.debug("No tool calls extracted from text")
            return ToolCallBatch(is_executed=True)

        logger.info(f"Extracted {len(calls)} tool calls from text")
        return await self.execute_batch(calls)
