from typing import Any, Dict

from utils.http import Http
from . import provider_name

WIRESPEED_BASE = "https://api.wirespeed.co"


@provider_name("wirespeed")
class WirespeedClient:
    """Thin transport over the Wirespeed MDR API.

    Holds one bearer credential; every call is a single request/response
    exchange that returns the decoded JSON body or raises `TransportError`.
    A team switch yields a new token, which callers wrap in a new client.
    """

    def __init__(self, api_key: str, http: Http, base_url: str = WIRESPEED_BASE):
        self.api_key = api_key
        self.http = http
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _get(self, path: str) -> Any:
        return await self.http.get(f"{self.base_url}{path}", headers=self._headers())

    async def _post(self, path: str, body: Any) -> Any:
        return await self.http.post(f"{self.base_url}{path}", headers=self._headers(), json=body)

    # team

    async def get_current_team(self) -> Any:
        return await self._get("/team")

    async def search_teams(self, query: Dict) -> Any:
        return await self._post("/team", query)

    async def switch_team(self, team_id: str) -> Any:
        return await self._post("/team/switch", {"teamId": team_id})

    async def get_platform_logos(self) -> Any:
        return await self._get("/team/platform-logo")

    # statistics

    async def get_team_statistics_detections(self, period: Dict) -> Any:
        return await self._post("/team/statistics/detections", period)

    async def get_team_statistics_operating_systems(self, period: Dict) -> Any:
        return await self._post("/team/statistics/operating-systems", period)

    async def get_team_statistics_resources(self, period: Dict) -> Any:
        return await self._post("/team/statistics/resources", period)

    async def get_team_statistics_geography(self, period: Dict) -> Any:
        return await self._post("/team/statistics/geography", period)

    async def get_team_statistics_events(self, period: Dict) -> Any:
        return await self._post("/team/statistics/events", period)

    async def get_cases_stats_by_severity(self, period: Dict) -> Any:
        return await self._post("/cases/stats/severity", period)

    async def get_detection_stats_by_category_class(self, period: Dict) -> Any:
        return await self._post("/detection/stats/category-class", period)

    # mean-time metrics

    async def get_mttr(self, period: Dict) -> Any:
        return await self._post("/cases/mttr", period)

    async def get_mttd(self, period: Dict) -> Any:
        return await self._post("/detection/mttd", period)

    async def get_mttv(self, period: Dict) -> Any:
        return await self._post("/detection/mttv", period)

    async def get_mttc(self, period: Dict) -> Any:
        return await self._post("/cases/mttc", period)

    # listings

    async def get_cases(self, query: Dict) -> Any:
        return await self._post("/cases", query)

    async def get_detections(self, query: Dict) -> Any:
        return await self._post("/detection", query)

    async def get_integrations(self, query: Dict) -> Any:
        return await self._post("/integration", query)

    async def get_assets_by_detection_id(self, detection_id: str) -> Any:
        return await self._get(f"/asset/detection/{detection_id}")

