"""Tools the model can call - weather, web search, arithmetic, clock."""

from .base import BaseTool, ToolName, to_json
from .weather import WeatherTool, weather_condition
from .web_search import WebSearchTool, simulated_results
from .calculator import CalculatorTool
from .clock import CurrentTimeTool

# Registration order is the order tools appear in the system prompt
TOOL_CLASSES = (
    WeatherTool,
    WebSearchTool,
    CalculatorTool,
    CurrentTimeTool,
)

__all__ = [
    'BaseTool',
    'ToolName',
    'to_json',
    'TOOL_CLASSES',
    'WeatherTool',
    'weather_condition',
    'WebSearchTool',
    'simulated_results',
    'CalculatorTool',
    'CurrentTimeTool',
]
