import argparse
import asyncio
import json
import logging
import os
import sys
import tomllib
from typing import Any, Dict, Optional, Tuple

import httpx
import pydantic

from aggregator import DEFAULT_LOGO, get_report_data, join
from errors import TransportError, ValidationError
from providers import get_provider
from providers.wirespeed import WIRESPEED_BASE
from schemas import CustomColors, ReportRequest, TeamsRequest, TeamsResponse
from utils.coerce import as_dict, as_list
from utils.http import Http

logger = logging.getLogger(__name__)

API_KEY_REQUIRED = "API key is required"
REPORT_BAD_CREDENTIAL = "Invalid API key or session expired."
REPORT_UPSTREAM_FAILURE = "Error retrieving security data from Wirespeed."
REPORT_FAILURE = "Failed to generate report"
TEAMS_BAD_CREDENTIAL = "Invalid API key. Please check your credentials."
TEAMS_UPSTREAM_FAILURE = "Could not connect to the Wirespeed API. Please try again later."
TEAMS_FAILURE = "Failed to fetch teams"

TEAM_SEARCH = {"size": 1000, "orderBy": "name", "orderDir": "asc"}

Response = Tuple[int, Dict[str, Any]]


def load_config(path: str = "config.toml") -> Dict:
    """Load config.toml if present; otherwise return sane defaults."""
    cfg = {
        "api": {
            "provider": "wirespeed",
            "base_url": WIRESPEED_BASE,
            "key": "",
        },
        "network": {
            "timeout_seconds": 30,
        },
        "branding": {
            "default_logo": DEFAULT_LOGO,
            "theme": "light",
        },
        "logging": {
            "level": "INFO",
        },
    }
    if os.path.exists(path):
        with open(path, "rb") as f:
            user = tomllib.load(f)
        # shallow merge
        for k, v in user.items():
            if isinstance(v, dict) and k in cfg:
                cfg[k].update(v)
            else:
                cfg[k] = v
    return cfg


def _validation_message(e: pydantic.ValidationError) -> str:
    first = e.errors()[0]
    where = ".".join(str(p) for p in first.get("loc", ()))
    return f"Invalid request: {where} {first.get('msg', '')}".strip()


async def generate_report(body: Any, cfg: Dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> Response:
    """Report request handler. Upstream error detail is logged, never returned."""
    if not as_dict(body).get("apiKey"):
        return 400, {"error": API_KEY_REQUIRED}
    try:
        req = ReportRequest.model_validate(body)
    except pydantic.ValidationError as e:
        return 400, {"error": _validation_message(e)}

    try:
        async with Http(timeout=cfg["network"]["timeout_seconds"], transport=transport) as http:
            report = await get_report_data(
                req.api_key,
                req.timeframe,
                req.team_id,
                req.custom_colors,
                req.hide_powered_by,
                http=http,
                base_url=cfg["api"]["base_url"],
                default_logo=cfg["branding"]["default_logo"],
                theme=cfg["branding"]["theme"],
                provider=cfg["api"]["provider"],
            )
    except ValidationError as e:
        return 400, {"error": str(e)}
    except TransportError as e:
        logger.error(f"Wirespeed API error during report generation: {e}")
        return 500, {"error": REPORT_BAD_CREDENTIAL if e.is_unauthorized else REPORT_UPSTREAM_FAILURE}
    except Exception:
        logger.exception("Error generating report")
        return 500, {"error": REPORT_FAILURE}
    return 200, report.to_wire()


async def list_teams(body: Any, cfg: Dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> Response:
    """Teams visible to an API key, and whether it belongs to a service provider."""
    try:
        req = TeamsRequest.model_validate(as_dict(body))
    except pydantic.ValidationError as e:
        return 400, {"error": _validation_message(e)}
    if not req.api_key:
        return 400, {"error": API_KEY_REQUIRED}

    try:
        async with Http(timeout=cfg["network"]["timeout_seconds"], transport=transport) as http:
            api = get_provider(cfg["api"]["provider"])(req.api_key, http, cfg["api"]["base_url"])
            current_team, search = await join(
                api.get_current_team(),
                api.search_teams(dict(TEAM_SEARCH)),
            )
    except TransportError as e:
        logger.error(f"Wirespeed API error in teams fetch: {e}")
        return 500, {"error": TEAMS_BAD_CREDENTIAL if e.is_unauthorized else TEAMS_UPSTREAM_FAILURE}
    except Exception:
        logger.exception("Error fetching teams")
        return 500, {"error": TEAMS_FAILURE}

    resp = TeamsResponse(
        is_service_provider=bool(as_dict(current_team).get("serviceProvider")),
        teams=[t for t in as_list(as_dict(search).get("data")) if isinstance(t, dict)],
    )
    return 200, resp.model_dump(mode="json", by_alias=True)


def ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def main() -> None:
    ap = argparse.ArgumentParser(description="MDR security report engine")
    ap.add_argument("--config", default="config.toml")
    ap.add_argument("--api-key", help="Wirespeed API key (falls back to config, then $WIRESPEED_API_KEY)")
    ap.add_argument("--list-teams", action="store_true", help="List teams visible to the key and exit")
    ap.add_argument("--start", help="Report window start (ISO-8601)")
    ap.add_argument("--end", help="Report window end (ISO-8601)")
    ap.add_argument("--label", default="", help="Period label, e.g. 'January'")
    ap.add_argument("--team-id", help="Build the report for this managed team")
    ap.add_argument("--primary-color")
    ap.add_argument("--secondary-color")
    ap.add_argument("--hide-powered-by", action="store_true")
    ap.add_argument("--out-json", default="out/report.json")
    args = ap.parse_args()

    cfg = load_config(args.config)
    logging.basicConfig(
        level=getattr(logging, str(cfg["logging"]["level"]).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    api_key = args.api_key or cfg["api"]["key"] or os.environ.get("WIRESPEED_API_KEY", "")

    if args.list_teams:
        status, body = asyncio.run(list_teams({"apiKey": api_key}, cfg))
    else:
        if not args.start or not args.end:
            ap.error("--start and --end are required unless --list-teams is given")
        request: Dict[str, Any] = {
            "apiKey": api_key,
            "timeframe": {"startDate": args.start, "endDate": args.end, "periodLabel": args.label},
        }
        if args.team_id:
            request["teamId"] = args.team_id
            colors = CustomColors(primary=args.primary_color, secondary=args.secondary_color)
            request["customColors"] = colors.model_dump(by_alias=True, exclude_none=True)
            request["hidePoweredBy"] = args.hide_powered_by
        status, body = asyncio.run(generate_report(request, cfg))

    if status != 200:
        print(f"Error ({status}): {body.get('error')}", file=sys.stderr)
        raise SystemExit(1)

    ensure_parent(args.out_json)
    with open(args.out_json, "w", encoding="utf-8") as f:
        json.dump(body, f, ensure_ascii=False, indent=2)

    print(f"Saved → {args.out_json}")


if __name__ == "__main__":
    main()
