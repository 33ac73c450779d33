"""
Tool Calling System

Text-based tool calling for models without reliable native function calling:
1. Registry - the tool catalog and the system prompt that advertises it
2. Extraction - pulling the tool-call JSON out of free-form completion text
3. Execution - dispatching calls and collecting results for the follow-up round
"""

from .base import (
    ToolCall,
    ToolCallSource,
    ToolExecutionResult,
    ToolCallBatch,
)
from .text_extractor import ToolCallExtractor, ExtractionResult, extract_tool_calls
from .executor import ToolExecutor
from .registry import ToolDefinition, list_tools, render_system_prompt

__all__ = [
    # Base types
    'ToolCall',
    'ToolCallSource',
    'ToolExecutionResult',
    'ToolCallBatch',
    # Components
    'ToolCallExtractor',
    'ExtractionResult',
    'extract_tool_calls',
    'ToolExecutor',
    'ToolDefinition',
    'list_tools',
    'render_system_prompt',
]
