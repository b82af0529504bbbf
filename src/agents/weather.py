"""Current weather for a city via Open-Meteo (no API key required).

Two calls: geocode the city name to coordinates + IANA timezone, then fetch
the current temperature and WMO weather code for those coordinates.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger("rovi.agents.weather")

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
DEFAULT_TIMEOUT = 10

# WMO weather interpretation codes -> (description, coarse condition)
WEATHER_CODES: dict[int, tuple[str, str]] = {
    0: ("clear sky", "clear"),
    1: ("mainly clear", "clear"),
    2: ("partly cloudy", "cloud"),
    3: ("overcast", "cloud"),
    45: ("foggy", "fog"),
    48: ("depositing rime fog", "fog"),
    51: ("light drizzle", "rain"),
    53: ("moderate drizzle", "rain"),
    55: ("dense drizzle", "rain"),
    56: ("light freezing drizzle", "rain"),
    57: ("dense freezing drizzle", "rain"),
    61: ("slight rain", "rain"),
    63: ("moderate rain", "rain"),
    65: ("heavy rain", "rain"),
    66: ("light freezing rain", "rain"),
    67: ("heavy freezing rain", "rain"),
    71: ("slight snow", "snow"),
    73: ("moderate snow", "snow"),
    75: ("heavy snow", "snow"),
    77: ("snow grains", "snow"),
    80: ("slight rain showers", "rain"),
    81: ("moderate rain showers", "rain"),
    82: ("violent rain showers", "rain"),
    85: ("slight snow showers", "snow"),
    86: ("heavy snow showers", "snow"),
    95: ("thunderstorm", "rain"),
    96: ("thunderstorm with slight hail", "rain"),
    99: ("thunderstorm with heavy hail", "rain"),
}

_UNKNOWN = ("unknown", "clear")


class WeatherError(Exception):
    """Weather lookup failed; ``str(exc)`` is safe to show the user."""


class CityNotFoundError(WeatherError):
    pass


def describe_code(code: int | None) -> dict[str, str]:
    description, condition = WEATHER_CODES.get(code, _UNKNOWN) if code is not None else _UNKNOWN
    return {"description": description, "condition": condition}


def _get_json(url: str, params: dict[str, Any], timeout: float, label: str) -> dict[str, Any]:
    try:
        resp = requests.get(url, params=params, timeout=timeout)
    except requests.RequestException as exc:
        raise WeatherError(f"{label} API unreachable: {exc}") from exc
    if not resp.ok:
        raise WeatherError(f"{label} API error: {resp.status_code} {resp.reason}")
    return resp.json()


def geocode(city: str, *, url: str = GEOCODING_URL, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any]:
    """Resolve *city* to ``{name, latitude, longitude, timezone}``."""
    data = _get_json(
        url,
        {"name": city, "count": 1, "language": "en", "format": "json"},
        timeout,
        "Geocoding",
    )
    results = data.get("results") or []
    if not results:
        raise CityNotFoundError(f'City "{city}" not found.')
    top = results[0]
    return {
        "name": top.get("name", city),
        "latitude": top["latitude"],
        "longitude": top["longitude"],
        "timezone": top.get("timezone"),
    }


def fetch_weather(
    city: str,
    *,
    geocoding_url: str = GEOCODING_URL,
    forecast_url: str = FORECAST_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """Return ``{temperature, condition, description, weather_code, timezone}``."""
    city = (city or "").strip()
    if not city:
        raise WeatherError("City name is required.")

    place = geocode(city, url=geocoding_url, timeout=timeout)
    data = _get_json(
        forecast_url,
        {
            "latitude": place["latitude"],
            "longitude": place["longitude"],
            "current": "temperature_2m,weather_code",
            "temperature_unit": "celsius",
        },
        timeout,
        "Weather",
    )

    current = data.get("current") or {}
    if "temperature_2m" not in current:
        raise WeatherError("Weather API returned no current conditions.")
    code = current.get("weather_code")
    info = describe_code(code)

    weather = {
        "temperature": round(current["temperature_2m"]),
        "condition": info["condition"],
        "description": info["description"],
        "weather_code": code,
        "timezone": place.get("timezone") or data.get("timezone") or "UTC",
    }
    logger.info("Weather for %s: %s°C, %s", city, weather["temperature"], weather["description"])
    return weather


def weather_from_config(city: str, cfg: dict[str, Any]) -> dict[str, Any]:
    """:func:`fetch_weather` with endpoints and timeout from ``cfg['weather']``."""
    wcfg = cfg.get("weather", {}) or {}
    return fetch_weather(
        city,
        geocoding_url=wcfg.get("geocoding_url", GEOCODING_URL),
        forecast_url=wcfg.get("forecast_url", FORECAST_URL),
        timeout=wcfg.get("timeout", DEFAULT_TIMEOUT),
    )
