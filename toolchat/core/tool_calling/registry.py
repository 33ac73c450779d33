"""
Tool Registry

Static catalog of the tools the model may call, and the system prompt that
tells the model how to call them. Built once from the tool classes; never
mutated at runtime.
"""

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Tuple

from toolchat.tools import TOOL_CLASSES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolDefinition:
    """
    Tool definition rendered into prompts and the /api/tools listing
    """
    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    required: Tuple[str, ...] = ()

    def to_openai_format(self) -> Dict[str, Any]:
        """JSON Schema function format"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": self.parameters,
                    "required": list(self.required)
                }
            }
        }


@lru_cache(maxsize=1)
def _tool_definitions() -> Tuple[ToolDefinition, ...]:
    definitions = []
    seen = set()
    for tool_class in TOOL_CLASSES:
        name = tool_class.name.value
        if name in seen:
            raise ValueError(f"Duplicate tool name: {name}")
        seen.add(name)
        definitions.append(ToolDefinition(
            name=name,
            description=tool_class.description,
            parameters=tool_class.parameters,
            required=tuple(tool_class.required_params),
        ))
    logger.debug(f"Tool registry built: {sorted(seen)}")
    return tuple(definitions)


def list_tools() -> List[ToolDefinition]:
    """All tool definitions, in registration order"""
    return list(_tool_definitions())


def get_tool_definition(name: str) -> ToolDefinition:
    for definition in _tool_definitions():
        if definition.name == name:
            return definition
    raise KeyError(name)


PLAIN_SYSTEM_PROMPT = "你是一个乐于助人的智能助手。请用清晰、准确的语言回答用户的问题。"

TOOL_RULES = """**核心规则**：
1. **必须调用工具**：涉及天气、时间、计算、搜索的问题，必须调用相应工具，严禁凭空回答。
2. **严禁拒绝**：不要说"我无法获取"、"我没有实时能力"。你有工具，用就是了。
3. **JSON格式**：调用工具时，仅返回一个标准的 JSON 对象，包含 "tool_name" 和 "arguments" 两个字段；不要包裹在 Markdown 代码块中，也不要加任何解释文字。

**标准调用示例**：

用户: "现在几点了？"
{
  "tool_name": "get_current_time",
  "arguments": { "format": "default" }
}

用户: "明天上海天气如何？"
{
  "tool_name": "get_weather",
  "arguments": {
    "city": "上海",
    "date": "明天"
  }
}"""


def _render_tool(definition: ToolDefinition) -> str:
    schema = json.dumps(definition.parameters, ensure_ascii=False, indent=2)
    return f"- {definition.name}: {definition.description}\n  参数: {schema}"


@lru_cache(maxsize=2)
def render_system_prompt(include_tools: bool = True) -> str:
    """
    Build the system prompt.

    Args:
        include_tools: when False, return the plain assistant prompt

    Returns:
        Prompt text passed to the provider as an opaque string
    """
    if not include_tools:
        return PLAIN_SYSTEM_PROMPT

    tools_text = "\n\n".join(_render_tool(d) for d in _tool_definitions())
    return (
        "你是一个拥有强大工具的智能助手。\n\n"
        f"可用工具：\n\n{tools_text}\n\n"
        f"{TOOL_RULES}\n"
    )
