"""Weather tool backed by Open-Meteo (geocoding + 7-day forecast, no API key)"""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple
import logging

import httpx

from .base import BaseTool, ToolName, to_json

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

TODAY_LABEL = "今天"
TOMORROW_LABEL = "明天"


def weather_condition(code: Optional[int]) -> Tuple[str, str]:
    """
    Map a WMO weather code to (condition, icon).

    :param code: WMO code from Open-Meteo
    :return: tuple of Chinese condition label and emoji icon
    """
    if code is None:
        return "未知", "🌡️"
    if code == 0:
        return "晴", "☀️"
    if 1 <= code <= 3:
        return "多云", "⛅"
    if 45 <= code <= 48:
        return "雾", "🌫️"
    if 51 <= code <= 67:
        return "雨", "🌧️"
    if 71 <= code <= 77:
        return "雪", "❄️"
    if 80 <= code <= 82:
        return "雨", "🌧️"
    if 85 <= code <= 86:
        return "雪", "❄️"
    if code >= 95:
        return "雷雨", "⛈️"
    return "未知", "🌡️"


def day_label(day: str, today: str) -> str:
    """
    Label a forecast day: 今天 / 明天 by exact date match, otherwise M/D.

    :param day: ISO date of the forecast entry
    :param today: ISO date considered "today"
    """
    if day == today:
        return TODAY_LABEL

    tomorrow = (date.fromisoformat(today) + timedelta(days=1)).isoformat()
    if day == tomorrow:
        return TOMORROW_LABEL

    parsed = date.fromisoformat(day)
    return f"{parsed.month}/{parsed.day}"


def build_forecast(daily: Dict[str, List[Any]], today: str) -> List[Dict[str, Any]]:
    """Turn Open-Meteo daily series into display entries."""
    forecast = []
    for index, day in enumerate(daily["time"]):
        max_temp = daily["temperature_2m_max"][index]
        min_temp = daily["temperature_2m_min"][index]
        condition, icon = weather_condition(daily["weather_code"][index])
        forecast.append({
            "date": day_label(day, today),
            "temp": round((max_temp + min_temp) / 2),  # daily mean
            "condition": condition,
            "icon": icon,
            "min_temp": round(min_temp),
            "max_temp": round(max_temp),
        })
    return forecast


class WeatherTool(BaseTool):
    """get_weather: current conditions plus a 7-day forecast for a city"""

    name = ToolName.GET_WEATHER
    description = "获取指定城市的天气信息，支持查询实时天气和未来预报"
    parameters = {
        "city": {
            "type": "string",
            "description": "城市名称，例如：北京、上海、深圳"
        },
        "date": {
            "type": "string",
            "description": "日期，例如：今天、明天、后天、2026-01-20。不填默认为今天"
        }
    }
    required_params = ["city"]

    async def geocode(self, client: httpx.AsyncClient, city: str) -> Optional[Dict[str, Any]]:
        """
        Resolve a city name to coordinates (first result only).

        :return: {latitude, longitude, name} or None when nothing matched
        """
        response = await client.get(GEOCODING_URL, params={
            "name": city,
            "count": 1,
            "language": "zh",
            "format": "json",
        })
        response.raise_for_status()
        results = response.json().get("results") or []
        if not results:
            return None

        first = results[0]
        return {
            "latitude": first["latitude"],
            "longitude": first["longitude"],
            "name": first.get("name"),
        }

    async def fetch_forecast(self, client: httpx.AsyncClient, latitude: float, longitude: float) -> Dict[str, Any]:
        """Current conditions and daily series for coordinates."""
        response = await client.get(FORECAST_URL, params={
            "latitude": latitude,
            "longitude": longitude,
            "current": "temperature_2m,relative_humidity_2m,weather_code",
            "daily": "weather_code,temperature_2m_max,temperature_2m_min",
            "timezone": "auto",
        })
        response.raise_for_status()
        return response.json()

    async def execute(self, city: str = "", date: Optional[str] = None, **kwargs) -> str:
        city = str(city if city is not None else "").strip()
        if not city:
            return to_json({"error": "缺少城市参数"})

        try:
            async with self.http_client() as client:
                location = await self.geocode(client, city)
                if location is None:
                    return to_json({"error": f"未找到城市: {city}"})

                data = await self.fetch_forecast(client, location["latitude"], location["longitude"])

            current = data["current"]
            # "today" is the city's local date when Open-Meteo reports it
            current_time = current.get("time") or ""
            today = current_time[:10] if len(current_time) >= 10 else date_today()

            condition, icon = weather_condition(current.get("weather_code"))
            payload = {
                "location": location.get("name") or city,
                "current": {
                    "temp": round(current["temperature_2m"]),
                    "condition": condition,
                    "humidity": current.get("relative_humidity_2m"),
                    "icon": icon,
                },
                "forecast": build_forecast(data["daily"], today),
            }
            if date:
                payload["requested_date"] = date

            logger.info(f"Weather for '{city}' resolved to '{payload['location']}'")
            return to_json(payload)

        except (httpx.HTTPError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Weather lookup failed for '{city}': {e}")
            return to_json({"error": "获取天气失败，请稍后再试"})


def date_today() -> str:
    return date.today().isoformat()
