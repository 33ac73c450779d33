"""Clock tool: current local time"""

from datetime import datetime
from typing import Callable, Optional
import re

from .base import BaseTool, ToolName

DEFAULT_FORMAT = "%Y/%m/%d %H:%M:%S"

# Tokens of formats like 'YYYY-MM-DD HH:mm:ss'; longest first
FORMAT_TOKENS = {
    "YYYY": "%Y",
    "MM": "%m",
    "DD": "%d",
    "HH": "%H",
    "mm": "%M",
    "ss": "%S",
}
TOKEN_PATTERN = re.compile("|".join(FORMAT_TOKENS))


def to_strftime(fmt: Optional[str]) -> str:
    """
    Translate a 'YYYY-MM-DD HH:mm:ss' style format into strftime.

    Best-effort: empty, 'default' or token-free formats use DEFAULT_FORMAT.
    """
    if not fmt or fmt.strip().lower() == "default":
        return DEFAULT_FORMAT

    if not TOKEN_PATTERN.search(fmt):
        return DEFAULT_FORMAT

    # Escape literal percent signs before substituting tokens
    escaped = fmt.replace("%", "%%")
    return TOKEN_PATTERN.sub(lambda m: FORMAT_TOKENS[m.group(0)], escaped)


class CurrentTimeTool(BaseTool):
    """get_current_time: wall-clock time in zh-CN style"""

    name = ToolName.GET_CURRENT_TIME
    description = "获取当前精确时间"
    parameters = {
        "format": {
            "type": "string",
            "description": "时间格式（可选），如 'YYYY-MM-DD HH:mm:ss'"
        }
    }
    required_params = []

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, **config):
        super().__init__(**config)
        self._clock = clock or datetime.now

    async def execute(self, format: Optional[str] = None, **kwargs) -> str:
        now = self._clock()
        return f"当前时间：{now.strftime(to_strftime(format))}"
