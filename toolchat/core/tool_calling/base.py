"""
Base types for tool calling

Includes:
- ToolCall: one tool invocation found in model output
- ToolCallSource: where the invocation came from
- ToolExecutionResult: outcome of one invocation (always a string payload)
- ToolCallBatch: invocations of one turn together with their results
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid
import json


class ToolCallSource(str, Enum):
    """Origin of a tool call"""
    TEXT_PARSED = "text_parsed"  # Extracted from completion text
    MANUAL = "manual"            # Built programmatically


@dataclass
class ToolCall:
    """
    A tool invocation

    Not guaranteed to reference a registered tool or to satisfy its schema;
    validity is checked by the executor.

    Attributes:
        name: tool name (get_weather, calculate, ...)
        arguments: argument mapping
        source: where the call came from
        id: unique call id
        raw_text: source snippet (for TEXT_PARSED)
    """

    name: str
    arguments: Dict[str, Any]
    source: ToolCallSource = ToolCallSource.MANUAL
    id: str = field(default_factory=lambda: f"call_{uuid.uuid4().hex[:12]}")
    raw_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tool_name": self.name,
            "arguments": self.arguments,
            "source": self.source.value,
        }

    def __repr__(self) -> str:
        args_preview = str(self.arguments)[:50] + "..." if len(str(self.arguments)) > 50 else str(self.arguments)
        return f"<ToolCall {self.name}({args_preview}) source={self.source.value}>"


ERROR_MARKERS = ("错误:", "工具执行错误:", "计算错误:")


@dataclass
class ToolExecutionResult:
    """
    Result of one tool execution

    `result` is JSON for structured tools and plain text otherwise; failures
    are encoded in it rather than raised.

    Attributes:
        tool_name: tool name
        arguments: arguments the tool was called with
        result: serialized payload or error string
        tool_call_id: id of the originating ToolCall
        execution_time_ms: wall time in milliseconds
    """

    tool_name: str
    arguments: Dict[str, Any]
    result: str
    tool_call_id: Optional[str] = None
    execution_time_ms: Optional[float] = None

    @property
    def is_error(self) -> bool:
        """True for error strings and for JSON payloads carrying an `error` key."""
        if self.result.startswith(ERROR_MARKERS):
            return True
        try:
            data = json.loads(self.result)
        except (json.JSONDecodeError, TypeError):
            return False
        return isinstance(data, dict) and "error" in data

    def to_dict(self) -> Dict[str, Any]:
        """Record returned to the caller"""
        return {
            "tool_name": self.tool_name,
            "arguments": self.arguments,
            "result": self.result,
        }

    def to_prompt_block(self) -> str:
        """Text block fed to the second completion"""
        arguments = json.dumps(self.arguments, ensure_ascii=False)
        return f"[{self.tool_name}] 参数: {arguments}\n结果: {self.result}"

    def __repr__(self) -> str:
        status = "❌" if self.is_error else "✅"
        return f"<ToolExecutionResult {status} {self.tool_name}>"


@dataclass
class ToolCallBatch:
    """
    Tool calls of one turn

    Attributes:
        calls: calls in detection order
        results: results in the same order
        is_executed: whether every call has a result
    """

    calls: List[ToolCall] = field(default_factory=list)
    results: List[ToolExecutionResult] = field(default_factory=list)
    is_executed: bool = False

    def add_result(self, result: ToolExecutionResult) -> None:
        self.results.append(result)
        if len(self.results) == len(self.calls):
            self.is_executed = True

    def to_records(self) -> List[Dict[str, Any]]:
        return [result.to_dict() for result in self.results]

    def to_followup_message(self, user_message: str) -> str:
        """
        Build the user turn of the second completion
        """
        blocks = "\n\n".join(result.to_prompt_block() for result in self.results)
        return (
            "以下是工具调用的返回结果：\n\n"
            f"{blocks}\n\n"
            "请根据以上工具返回的数据，用自然、简洁的中文回答用户的问题，"
            "不要再输出工具调用 JSON。\n"
            f"用户的问题：{user_message}"
        )

    @property
    def has_errors(self) -> bool:
        return any(r.is_error for r in self.results)

    def __len__(self) -> int:
        return len(self.calls)

    def __bool__(self) -> bool:
        return len(self.calls) > 0

    def __repr__(self) -> str:
        status = "executed" if self.is_executed else "pending"
        return f"<ToolCallBatch {len(self.calls)} calls, {status}>"
