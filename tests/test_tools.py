import asyncio
import json
from datetime import datetime
from unittest.mock import patch

import httpx
import pytest

from toolchat.tools import (
    CalculatorTool,
    CurrentTimeTool,
    WeatherTool,
    WebSearchTool,
    weather_condition,
)
from toolchat.tools.clock import to_strftime
from toolchat.tools.weather import build_forecast, day_label


# ===== calculate =====

@pytest.mark.parametrize("expression, expected", [
    ("2+3*4", "14"),
    ("(1+2)/3", "1"),
    ("10/4", "2.5"),
    ("-3 + 5", "2"),
    ("2**10", "1024"),
    ("7//2", "3"),
])
async def test_calculate(expression, expected):
    result = await CalculatorTool().execute(expression=expression)

    assert result == f"计算结果: {expression} = {expected}"


@pytest.mark.parametrize("expression", [
    "2+a",
    "__import__('os').system('ls')",
    "1;2",
    "`1`",
    "2 % 3",
    "abs(-1)",
])
async def test_calculate_rejects_before_evaluating(expression):
    with patch("toolchat.tools.calculator.evaluate") as evaluate:
        result = await CalculatorTool().execute(expression=expression)

    assert result == "错误: 表达式包含不允许的字符"
    evaluate.assert_not_called()


@pytest.mark.parametrize("expression", ["1/0", "()()", "2+", "1..2", "9**9999"])
async def test_calculate_evaluation_errors(expression):
    result = await CalculatorTool().execute(expression=expression)

    assert result.startswith("计算错误:")


async def test_calculate_missing_expression():
    assert await CalculatorTool().execute() == "错误: 缺少计算表达式"


@pytest.mark.parametrize("expression", [
    "((9**999)**999)**999",
    "2**(2**(2**(2**2)))",
    "(-10)**1001",
    "10**999*10**999*10**999*10**999*10**999",
])
async def test_calculate_oversized_results(expression):
    result = await asyncio.wait_for(CalculatorTool().execute(expression=expression), timeout=5)

    assert result.startswith("计算错误:")


@pytest.mark.parametrize("expression, expected", [
    ("2**-2", "0.25"),
    ("(-2)**3", "-8"),
    ("9**999 // 9**998", "9"),
])
async def test_calculate_powers_within_bounds(expression, expected):
    assert await CalculatorTool().execute(expression=expression) == f"计算结果: {expression} = {expected}"


# ===== get_current_time =====

def fixed_clock():
    return datetime(2026, 1, 20, 9, 5, 3)


async def test_current_time_default_format():
    result = await CurrentTimeTool(clock=fixed_clock).execute()

    assert result == "当前时间：2026/01/20 09:05:03"


async def test_current_time_custom_format():
    result = await CurrentTimeTool(clock=fixed_clock).execute(format="YYYY-MM-DD HH:mm")

    assert result == "当前时间：2026-01-20 09:05"


@pytest.mark.parametrize("fmt", [None, "", "default", "iso"])
def test_unrecognised_formats_use_default(fmt):
    assert to_strftime(fmt) == "%Y/%m/%d %H:%M:%S"


# ===== get_weather =====

@pytest.mark.parametrize("code, condition", [
    (0, "晴"), (1, "多云"), (3, "多云"), (45, "雾"), (48, "雾"),
    (51, "雨"), (67, "雨"), (71, "雪"), (77, "雪"), (80, "雨"), (82, "雨"),
    (85, "雪"), (86, "雪"), (95, "雷雨"), (99, "雷雨"),
    (4, "未知"), (50, "未知"), (90, "未知"), (None, "未知"),
])
def test_weather_condition_ranges(code, condition):
    assert weather_condition(code)[0] == condition


def test_day_labels():
    assert day_label("2026-01-20", "2026-01-20") == "今天"
    assert day_label("2026-01-21", "2026-01-20") == "明天"
    assert day_label("2026-02-01", "2026-01-31") == "明天"
    assert day_label("2026-01-25", "2026-01-20") == "1/25"


def test_forecast_temperatures(beijing_forecast):
    forecast = build_forecast(beijing_forecast["daily"], "2026-01-20")

    assert forecast[0] == {
        "date": "今天", "temp": 1, "condition": "晴", "icon": "☀️",
        "min_temp": -3, "max_temp": 5,
    }
    assert forecast[1]["date"] == "明天"
    assert forecast[1]["temp"] == 3
    assert forecast[2]["date"] == "1/22"
    assert forecast[2]["temp"] == -1
    assert forecast[2]["condition"] == "雷雨"


async def test_weather_payload(mock_http, open_meteo):
    tool = WeatherTool(http_client=mock_http(open_meteo))

    payload = json.loads(await tool.execute(city="北京", date="明天"))

    assert payload["location"] == "北京"
    assert payload["current"] == {"temp": 4, "condition": "多云", "humidity": 40, "icon": "⛅"}
    assert [d["date"] for d in payload["forecast"]] == ["今天", "明天", "1/22"]
    assert payload["requested_date"] == "明天"

    geocode, forecast = open_meteo.requests
    assert geocode.url.params["count"] == "1"
    assert forecast.url.params["latitude"] == "39.9075"


async def test_weather_city_not_found(mock_http, open_meteo):
    tool = WeatherTool(http_client=mock_http(open_meteo))

    payload = json.loads(await tool.execute(city="不存在的城市"))

    assert payload == {"error": "未找到城市: 不存在的城市"}
    assert len(open_meteo.requests) == 1


async def test_weather_numeric_city(mock_http, open_meteo):
    tool = WeatherTool(http_client=mock_http(open_meteo))

    payload = json.loads(await tool.execute(city=12345))

    assert payload == {"error": "未找到城市: 12345"}
    assert open_meteo.requests[0].url.params["name"] == "12345"


async def test_weather_network_failure(mock_http):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    payload = json.loads(await WeatherTool(http_client=mock_http(handler)).execute(city="北京"))

    assert "error" in payload


async def test_weather_http_error(mock_http):
    payload = json.loads(
        await WeatherTool(http_client=mock_http(lambda r: httpx.Response(502))).execute(city="北京")
    )

    assert "error" in payload


async def test_weather_missing_city():
    assert json.loads(await WeatherTool().execute()) == {"error": "缺少城市参数"}


# ===== search_web =====

async def test_search_without_key_is_simulated(mock_http):
    calls = []
    tool = WebSearchTool(http_client=mock_http(lambda r: calls.append(r)))

    payload = json.loads(await tool.execute(query="量子计算"))

    assert payload["is_simulated"] is True
    assert payload["query"] == "量子计算"
    assert len(payload["results"]) == 3
    assert all({"title", "url", "content"} <= set(r) for r in payload["results"])
    assert calls == []


async def test_search_with_key(mock_http, request_json):
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(200, json={
            "answer": "量子计算利用量子比特。",
            "results": [
                {"title": "量子计算", "url": "https://example.org/q", "content": "简介", "score": 0.9},
            ],
        })

    tool = WebSearchTool(http_client=mock_http(handler), api_key="tvly-test")

    payload = json.loads(await tool.execute(query="量子计算"))

    assert payload["is_simulated"] is False
    assert payload["answer"] == "量子计算利用量子比特。"
    assert payload["results"] == [
        {"title": "量子计算", "url": "https://example.org/q", "content": "简介"}
    ]
    request = captured[0]
    assert request.headers["Authorization"] == "Bearer tvly-test"
    assert request_json(request)["query"] == "量子计算"


async def test_search_key_from_environment(monkeypatch, mock_http):
    monkeypatch.setenv("TAVILY_API_KEY", "tvly-env")
    tool = WebSearchTool(http_client=mock_http(lambda r: httpx.Response(200, json={"results": []})))

    payload = json.loads(await tool.execute(query="x"))

    assert payload["is_simulated"] is False


async def test_search_failure(mock_http):
    tool = WebSearchTool(http_client=mock_http(lambda r: httpx.Response(500)), api_key="tvly-test")

    payload = json.loads(await tool.execute(query="量子计算"))

    assert payload["error"].startswith("搜索出错")


async def test_search_numeric_query():
    payload = json.loads(await WebSearchTool().execute(query=2026))

    assert payload["query"] == "2026"
    assert payload["is_simulated"] is True


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>gateway</html>"),
    httpx.Response(200, json=["not", "an", "object"]),
    httpx.Response(200, json={"results": ["plain string entry"]}),
])
async def test_search_malformed_response_is_structured_error(mock_http, response):
    tool = WebSearchTool(http_client=mock_http(lambda r: response), api_key="tvly-test")

    payload = json.loads(await tool.execute(query="量子计算"))

    assert payload["error"].startswith("搜索出错")
