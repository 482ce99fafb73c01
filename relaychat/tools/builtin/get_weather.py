from __future__ import annotations

from typing import Any

import aiohttp
from pydantic import BaseModel, Field

from ..base_tool import BaseTool

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"


class GetWeatherArgs(BaseModel):
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class GetWeatherTool(BaseTool):
    name: str = "get_weather"
    description: str = "Get the current weather at a location"
    args_schema: type[BaseModel] | dict[str, Any] | None = GetWeatherArgs

    async def _arun(self, **kwargs: Any) -> dict[str, Any]:
        args = GetWeatherArgs(**kwargs)
        params = {
            "latitude": args.latitude,
            "longitude": args.longitude,
            "current": "temperature_2m",
            "hourly": "temperature_2m",
            "daily": "sunrise,sunset",
            "timezone": "auto",
        }
        timeout = aiohttp.ClientTimeout(total=10.0)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            try:
                async with session.get(OPEN_METEO_URL, params=params) as resp:
                    if resp.status != 200:
                        return {
                            "type": "weather_error",
                            "status": resp.status,
                            "error": await resp.text(),
                        }
                    return await resp.json()
            except TimeoutError:
                return {"type": "weather_error", "error": "Weather service timeout"}
            except aiohttp.ClientError as e:
                return {
                    "type": "weather_error",
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
