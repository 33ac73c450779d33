"""Web search tool using the Tavily search API, with a simulated fallback"""

from typing import Any, Dict, List, Optional
import logging
import time

import httpx

from toolchat.core import config as app_config
from .base import BaseTool, ToolName, to_json

logger = logging.getLogger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


def simulated_results(query: str) -> List[Dict[str, str]]:
    """
    Fixed synthetic results used when no search key is configured.

    :param query: search query
    :return: list of {title, url, content}
    """
    return [
        {
            "title": f"{query} - 官方文档",
            "url": "https://example.com/doc",
            "content": "这是一个关于该搜索词的模拟官方文档内容...",
        },
        {
            "title": f"{query} 的最新动态",
            "url": "https://news.example.com/latest",
            "content": "最新的行业动态显示...",
        },
        {
            "title": f"维基百科: {query}",
            "url": f"https://wikipedia.org/wiki/{query}",
            "content": "维基百科上的详细解释...",
        },
    ]


class WebSearchTool(BaseTool):
    """search_web: ranked web results plus an optional synthesized answer"""

    name = ToolName.SEARCH_WEB
    description = "搜索网页内容，获取最新信息"
    parameters = {
        "query": {
            "type": "string",
            "description": "搜索关键词"
        }
    }
    required_params = ["query"]

    max_results = 5

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, api_key: Optional[str] = None, **config):
        super().__init__(http_client=http_client, **config)
        self._api_key = api_key

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key or app_config.get_search_api_key()

    async def search(self, client: httpx.AsyncClient, query: str, api_key: str) -> Dict[str, Any]:
        """One Tavily search call; raises httpx errors to the caller."""
        response = await client.post(
            TAVILY_SEARCH_URL,
            json={
                "query": query,
                "search_depth": "basic",
                "max_results": self.max_results,
                "include_answer": True,
            },
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
        )
        response.raise_for_status()
        return response.json()

    async def execute(self, query: str = "", **kwargs) -> str:
        query = str(query if query is not None else "").strip()
        if not query:
            return to_json({"error": "缺少搜索关键词"})

        api_key = self.api_key
        if not api_key:
            logger.info(f"TAVILY_API_KEY not set, returning simulated results for: {query}")
            return to_json({
                "query": query,
                "is_simulated": True,
                "results": simulated_results(query),
            })

        try:
            logger.info(f"Searching Tavily for: {query}")
            start_time = time.time()

            async with self.http_client() as client:
                data = await self.search(client, query, api_key)

            results = [
                {
                    "title": r.get("title", ""),
                    "url": r.get("url", ""),
                    "content": r.get("content", ""),
                }
                for r in (data.get("results") or [])
            ]

            logger.info(f"Found {len(results)} results in {time.time() - start_time:.2f}s")
            return to_json({
                "query": query,
                "is_simulated": False,
                "answer": data.get("answer"),
                "results": results,
            })

        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Search error: {e}")
            return to_json({"error": f"搜索出错: {e}"})
