import json

import httpx
import pytest


ENV_VARS = (
    "GOOGLE_API_KEY",
    "QWEN_API_KEY",
    "TAVILY_API_KEY",
    "QWEN_BASE_URL",
    "HTTP_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep a developer's .env / shell keys out of the tests"""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_http():
    """Factory: AsyncClient whose requests are answered by `handler`"""
    def make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return make


@pytest.fixture
def beijing_geocode():
    return {
        "results": [
            {"name": "北京", "latitude": 39.9075, "longitude": 116.39723, "country": "中国"}
        ]
    }


@pytest.fixture
def beijing_forecast():
    return {
        "current": {
            "time": "2026-01-20T14:00",
            "temperature_2m": 3.6,
            "relative_humidity_2m": 40,
            "weather_code": 2,
        },
        "daily": {
            "time": ["2026-01-20", "2026-01-21", "2026-01-22"],
            "weather_code": [0, 61, 95],
            "temperature_2m_max": [5.4, 7.0, 2.2],
            "temperature_2m_min": [-3.1, -1.0, -4.6],
        },
    }


@pytest.fixture
def open_meteo(beijing_geocode, beijing_forecast):
    """Handler serving Open-Meteo geocoding and forecast; records requests"""
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        if request.url.host == "geocoding-api.open-meteo.com":
            if request.url.params.get("name") == "北京":
                return httpx.Response(200, json=beijing_geocode)
            return httpx.Response(200, json={"generationtime_ms": 0.1})
        if request.url.host == "api.open-meteo.com":
            return httpx.Response(200, json=beijing_forecast)
        return None

    handler.requests = seen
    return handler


def json_body(request: httpx.Request):
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def request_json():
    return json_body
