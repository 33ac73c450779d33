"""
Base classes for the tool set

Classes:
- ToolName: closed set of tool names the model may call
- BaseTool: abstract base class for every tool
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional
import json
import logging

import httpx

from toolchat.core import config as app_config

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    """Every tool the backend knows. Adding a tool means adding a member here."""
    GET_WEATHER = "get_weather"
    SEARCH_WEB = "search_web"
    CALCULATE = "calculate"
    GET_CURRENT_TIME = "get_current_time"


def to_json(payload: Any) -> str:
    """Serialize a tool payload (keeps CJK readable for the model)."""
    return json.dumps(payload, ensure_ascii=False)


class BaseTool(ABC):
    """
    Abstract base class for tools

    Every tool must:
    - Have a name from ToolName
    - Have a description for the model
    - Define its parameters
    - Implement execute(), returning a string (JSON or plain text)

    Example:
        class EchoTool(BaseTool):
            name = ToolName.CALCULATE
            description = "Echo the input"
            parameters = {
                "text": {"type": "string", "description": "Input text"}
            }

            async def execute(self, text: str = "", **kwargs) -> str:
                return text
    """

    # Required attributes (must be overridden)
    name: ToolName
    description: str = ""
    parameters: Dict[str, Any] = {}

    # Optional attributes
    required_params: List[str] = []

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, **config):
        """
        Initialize the tool.

        :param http_client: shared AsyncClient (tests inject one with a MockTransport)
        :param config: extra configuration
        """
        self._http_client = http_client
        self.config = config

    @abstractmethod
    async def execute(self, **kwargs) -> str:
        """
        Run the tool.

        :param kwargs: tool arguments
        :return: serialized result
        """
        pass

    @asynccontextmanager
    async def http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the injected client, or a short-lived one closed on exit."""
        if self._http_client is not None:
            yield self._http_client
            return

        async with httpx.AsyncClient(timeout=app_config.get_http_timeout()) as client:
            yield client

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name='{self.name.value}'>"
