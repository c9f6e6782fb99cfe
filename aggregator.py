"""Report assembly.

Fans out the statistics/listing queries for one report window, joins them,
and derives every field of the `Report`. Remote payloads are never trusted to
match their documented shape: every read goes through `utils.coerce`.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from errors import TransportError, ValidationError
from providers import get_provider
from providers.wirespeed import WIRESPEED_BASE
from schemas import (
    Branding, CasesBySeverity, CategoryClassStat, CustomColors, DarkWebReport,
    DetectionSummary, EndpointsByOS, EscalatedCase, ExposureLeak, FunnelData,
    IntegrationEvents, IntegrationSummary, LocationCount, MappedDetectionStat,
    MeanTimeMetrics, PotentialActions, RankedAsset, Report, ReportPeriod,
    Timeframe, VerdictAccuracy,
)
from utils.classify import (
    EXCLUDED_PLATFORMS, FIXED_DETECTION_CATEGORIES, GENERIC_INGEST_PLATFORMS,
    SEVERITY_RANK, classify_os, integration_types, is_high_risk,
    leak_severity, severity_rank,
)
from utils.coerce import as_dict, as_int, as_list, as_number, as_str, first_str, to_fixed
from utils.http import Http
from utils.sanitize import sanitize_text
from utils.timefmt import format_date_for_api, format_time_metric, normalize_period, parse_timestamp, to_day, utcnow

logger = logging.getLogger(__name__)

DEFAULT_LOGO = "/wirespeed.avif"
DEFAULT_CASE_RESPONSE = "Investigated and triaged by Wirespeed MDR."

PRIVATE_CREDENTIAL_EXPOSURE = "IDENTITY__PRIVATE_CREDENTIAL_EXPOSURE"
PUBLIC_CREDENTIAL_EXPOSURE = "IDENTITY__PUBLIC_CREDENTIAL_EXPOSURE"

TOP_ASSETS = 5
TOP_LOCATIONS = 10
TOP_ESCALATED_CASES = 10
RECENT_LEAKS = 5


@dataclass
class RawResults:
    """Undecoded payloads of one fan-out, one slot per query."""
    team: Any = None
    stats_detections: Any = None
    stats_operating_systems: Any = None
    stats_resources: Any = None
    stats_geography: Any = None
    stats_events: Any = None
    severity_stats: Any = None
    mttr: Any = None
    mttd: Any = None
    mttv: Any = None
    mttc: Any = None
    cases: Any = None
    detections: Any = None
    private_credential_cases: Any = None
    public_credential_cases: Any = None
    category_class_stats: Any = None
    integrations: Any = None
    detection_assets: List[Any] = field(default_factory=list)


async def join(*aws):
    """`asyncio.gather` that cancels the remaining calls once one fails."""
    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for t in tasks:
            t.cancel()
        raise


def _case_search(period: ReportPeriod, category: Optional[str] = None) -> Dict:
    query = {
        "orderBy": "createdAt",
        "orderDir": "desc",
        "createdAt": {"gte": period.start_date, "lte": period.end_date},
    }
    if category:
        query["category"] = category
    return query


async def fetch_all(api, period: ReportPeriod) -> RawResults:
    window = {"startDate": period.start_date, "endDate": period.end_date}
    (
        team,
        stats_detections,
        stats_operating_systems,
        stats_resources,
        stats_geography,
        stats_events,
        severity_stats,
        mttr,
        mttd,
        mttv,
        mttc,
        cases,
        detections,
        private_credential_cases,
        public_credential_cases,
        category_class_stats,
        integrations,
    ) = await join(
        api.get_current_team(),
        api.get_team_statistics_detections(window),
        api.get_team_statistics_operating_systems(window),
        api.get_team_statistics_resources(window),
        api.get_team_statistics_geography(window),
        api.get_team_statistics_events(window),
        api.get_cases_stats_by_severity(window),
        api.get_mttr(window),
        api.get_mttd(window),
        api.get_mttv(window),
        api.get_mttc(window),
        api.get_cases(_case_search(period)),
        api.get_detections(_case_search(period)),
        api.get_cases(_case_search(period, PRIVATE_CREDENTIAL_EXPOSURE)),
        api.get_cases(_case_search(period, PUBLIC_CREDENTIAL_EXPOSURE)),
        api.get_detection_stats_by_category_class(window),
        api.get_integrations({"includeDisabled": True}),
    )

    detection_ids = [
        d["id"] for d in as_list(as_dict(detections).get("data"))
        if isinstance(d, dict) and isinstance(d.get("id"), (str, int)) and d.get("id") != ""
    ]
    logger.debug(f"Fetching assets for {len(detection_ids)} detections")
    detection_assets = await join(*(api.get_assets_by_detection_id(i) for i in detection_ids))

    return RawResults(
        team=team,
        stats_detections=stats_detections,
        stats_operating_systems=stats_operating_systems,
        stats_resources=stats_resources,
        stats_geography=stats_geography,
        stats_events=stats_events,
        severity_stats=severity_stats,
        mttr=mttr,
        mttd=mttd,
        mttv=mttv,
        mttc=mttc,
        cases=cases,
        detections=detections,
        private_credential_cases=private_credential_cases,
        public_credential_cases=public_credential_cases,
        category_class_stats=category_class_stats,
        integrations=integrations,
        detection_assets=list(detection_assets),
    )


def merge_statistics(raw: RawResults) -> Dict[str, Any]:
    """Flatten the six statistic groups into one mapping with defaults."""
    resources = as_dict(raw.stats_resources)
    geography = as_dict(raw.stats_geography)
    stats = dict(as_dict(raw.stats_detections))
    stats.update(
        operatingSystems=as_list(as_dict(raw.stats_operating_systems).get("operatingSystems")),
        billableUsers=as_int(resources.get("billableUsers")),
        billableEndpoints=as_int(resources.get("billableEndpoints")),
        detectionLocations=as_list(geography.get("detectionLocations")),
        suspiciousLoginLocations=as_list(geography.get("suspiciousLoginLocations")),
        ocsfStatistics=as_list(as_dict(raw.stats_events).get("ocsfStatistics")),
        severityStats=as_list(raw.severity_stats),
    )
    return stats


def percent(numerator: Any, denominator: Any) -> str:
    n, d = as_number(numerator), as_number(denominator)
    if d <= 0:
        return "0%"
    value = min(max(n / d * 100, 0.0), 100.0)
    return f"{to_fixed(value, 2)}%"


def total_events(ocsf_statistics: List) -> int:
    return sum(as_int(as_dict(s).get("totalEvents")) for s in ocsf_statistics)


def events_by_integration(ocsf_statistics: List) -> List[IntegrationEvents]:
    rows = []
    for s in map(as_dict, ocsf_statistics):
        name = as_str(as_dict(as_dict(s.get("integration")).get("config")).get("name"), "Unknown Integration")
        events = as_int(s.get("totalEvents"))
        rows.append(IntegrationEvents(
            name=name,
            processed=f"{to_fixed(as_number(s.get('totalBytes')) / 1024 / 1024, 2)} MB",
            count=f"{events:,}",
            count_value=events,
        ))
    return rows


def bucket_operating_systems(operating_systems: List) -> EndpointsByOS:
    counts = EndpointsByOS().model_dump()
    for entry in map(as_dict, operating_systems):
        bucket = classify_os(as_str(entry.get("operatingSystem")))
        counts[bucket] += as_int(entry.get("count"))
    return EndpointsByOS(**counts)


def _top(tally: Dict[str, int], limit: int = TOP_ASSETS) -> List[RankedAsset]:
    # sorted() is stable: ties keep first-seen order
    ranked = sorted(tally.items(), key=lambda kv: kv[1], reverse=True)
    return [RankedAsset(name=name, count=count) for name, count in ranked[:limit]]


def rank_attack_surface(detection_assets: List) -> Tuple[List[RankedAsset], List[RankedAsset]]:
    """Most frequently involved endpoints and directory identities across detections."""
    endpoints: Dict[str, int] = {}
    identities: Dict[str, int] = {}
    for assets in map(as_dict, detection_assets):
        for e in map(as_dict, as_list(assets.get("endpoints"))):
            name = first_str(e.get("displayName"), e.get("name"))
            if name:
                endpoints[name] = endpoints.get(name, 0) + 1
        for u in map(as_dict, as_list(assets.get("directory"))):
            identity = first_str(u.get("displayName"), u.get("email"))
            if identity and u.get("directoryId"):
                identities[identity] = identities.get(identity, 0) + 1
    return _top(endpoints), _top(identities)


def top_locations(locations: List, limit: int = TOP_LOCATIONS) -> List[LocationCount]:
    ranked = sorted(map(as_dict, locations), key=lambda l: as_int(l.get("count")), reverse=True)
    return [
        LocationCount(country=as_str(l.get("country"), "Unknown"), count=as_int(l.get("count")))
        for l in ranked[:limit]
    ]


def count_cases_by_severity(severity_stats: List) -> CasesBySeverity:
    counts = {}
    for severity in SEVERITY_RANK:
        found = next((s for s in map(as_dict, severity_stats) if s.get("severity") == severity), {})
        counts[severity.lower()] = as_int(found.get("count"))
    return CasesBySeverity(**counts)


def integration_display_name(integration: Dict) -> str:
    config = as_dict(integration.get("config"))
    platform = as_str(integration.get("platform"))
    if platform in GENERIC_INGEST_PLATFORMS:
        label = as_str(as_dict(integration.get("identityFields")).get("label"))
        if label:
            return label
    return first_str(config.get("name"), platform, default="Unknown Integration")


def summarize_integrations(integrations_response: Any) -> List[IntegrationSummary]:
    summaries = []
    for i in map(as_dict, as_list(as_dict(integrations_response).get("data"))):
        platform = str(i.get("platform") or "")
        if platform in EXCLUDED_PLATFORMS:
            continue
        config = as_dict(i.get("config"))
        summaries.append(IntegrationSummary(
            name=integration_display_name(i),
            types=integration_types(as_str(config.get("description"))),
            platform=platform,
            enabled=bool(i.get("enabled")),
            logo=first_str(config.get("logoLight"), config.get("logo")),
        ))
    return summaries


def category_class_breakdown(category_stats: List) -> List[CategoryClassStat]:
    return [
        CategoryClassStat(
            category_class=as_str(c.get("categoryClass"), "OTHER"),
            display_name=as_str(c.get("displayName"), "Other"),
            count=as_int(c.get("count")),
            percentage=as_number(c.get("percentage")),
        )
        for c in map(as_dict, category_stats)
    ]


def map_detection_categories(category_stats: List, total_detections: int) -> List[MappedDetectionStat]:
    """Project raw category-class stats onto the fixed report categories."""
    denominator = total_detections or 1
    stats = [as_dict(s) for s in category_stats]
    mapped = []
    for key, label in FIXED_DETECTION_CATEGORIES:
        found = next(
            (s for s in stats
             if as_str(s.get("categoryClass")).lower() == key
             or as_str(s.get("displayName")).lower() == label.lower()),
            None,
        )
        count = as_int(found.get("count")) if found else 0
        mapped.append(MappedDetectionStat(category=label, percentage=count / denominator * 100, count=count))
    return mapped


def select_escalated_cases(cases_response: Any, now: Optional[datetime] = None) -> List[EscalatedCase]:
    cases = [as_dict(c) for c in as_list(as_dict(cases_response).get("data"))]
    ordered = sorted(cases, key=lambda c: severity_rank(c.get("severity")))
    fallback_created = format_date_for_api(now or utcnow()) + "Z"
    return [
        EscalatedCase(
            id=as_str(c.get("id")),
            sid=as_str(c.get("sid")),
            title=sanitize_text(as_str(c.get("title"))),
            severity=as_str(c.get("severity"), "INFORMATIONAL"),
            status=as_str(c.get("status"), "CLOSED"),
            created_at=as_str(c.get("createdAt"), fallback_created),
            response=sanitize_text(first_str(c.get("summary"), c.get("notes"), default=DEFAULT_CASE_RESPONSE)),
        )
        for c in ordered[:TOP_ESCALATED_CASES]
    ]


def _newest_first(case: Dict):
    created = case.get("createdAt")
    try:
        return (0, -parse_timestamp(created).timestamp())
    except (AttributeError, TypeError, ValueError):
        # undated cases sort last
        return (1, 0.0)


def build_dark_web_report(private_cases: Any, public_cases: Any, now: Optional[datetime] = None) -> DarkWebReport:
    private_cases, public_cases = as_dict(private_cases), as_dict(public_cases)
    merged = [
        as_dict(c)
        for c in as_list(private_cases.get("data")) + as_list(public_cases.get("data"))
    ]
    merged.sort(key=_newest_first)

    leaks = []
    for c in merged[:RECENT_LEAKS]:
        platforms = as_list(c.get("platforms"))
        leaks.append(ExposureLeak(
            date=to_day(c.get("createdAt"), now),
            source=as_str(platforms[0] if platforms else None, "Web Leak"),
            type=sanitize_text(as_str(c.get("title"))) or "Unknown Exposure",
            severity=leak_severity(c.get("severity")),
        ))

    return DarkWebReport(
        # listing totals, not len(merged): the listings may be capped
        total_exposures=as_int(private_cases.get("totalCount")) + as_int(public_cases.get("totalCount")),
        high_risk_exposures=sum(1 for c in merged if is_high_risk(c.get("severity"))),
        # approximation: one exposure case is counted as one compromised account
        compromised_accounts=len(merged),
        recent_leaks=leaks,
    )


def _noun(count: int, singular: str) -> str:
    return singular if count == 1 else f"{singular}s"


def executive_summary(
    events: int,
    endpoints: int,
    users: int,
    detections: int,
    auto_closed: int,
    escalated: int,
    responses: int,
) -> str:
    return (
        f"During the time frame of this report, Wirespeed analyzed {events:,} events from "
        f"{endpoints} {_noun(endpoints, 'endpoint')}, {users} {_noun(users, 'user')}, "
        f"and other sources in your environment. Of those events, {detections} triggered "
        f"detections through automated rules and dynamic analysis. Of those detections, "
        f"Wirespeed and integrated security tools automatically resolved {auto_closed} and "
        f"escalated {escalated} {_noun(escalated, 'case')} to your security team. Those cases "
        f"led to {responses or 'no'} response {_noun(responses, 'action')} required to stop "
        f"further compromise by your security team. This defense strategy continues to reduce "
        f"your risk, which maximizes your security and minimizes cyberattack damage to your business."
    )


def build_branding(
    sp_team: Any,
    logos: Any,
    default_logo: str = DEFAULT_LOGO,
    hide_powered_by: Optional[bool] = None,
    colors: Optional[CustomColors] = None,
    theme: str = "light",
) -> Branding:
    sp_team, logos = as_dict(sp_team), as_dict(logos)
    return Branding(
        logo=first_str(logos.get("platformLogo"), sp_team.get("logo"), sp_team.get("logoUrl"), default=default_logo),
        logo_light=as_str(logos.get("platformLogoLight")) or None,
        logo_dark=as_str(logos.get("platformLogoDark")) or None,
        sp_name=as_str(sp_team.get("name")),
        support_email=as_str(sp_team.get("supportEmail")) or None,
        hide_powered_by=hide_powered_by,
        colors=colors,
        theme=theme,
    )


def assemble_report(
    raw: RawResults,
    period: ReportPeriod,
    period_label: Optional[str] = "",
    branding: Optional[Branding] = None,
    now: Optional[datetime] = None,
) -> Report:
    stats = merge_statistics(raw)

    def n(key: str) -> int:
        return as_int(stats.get(key))

    total = n("totalDetections")
    escalated = n("escalatedDetections")
    chat_ops = n("chatOpsDetections")
    containment = n("containmentDetections")
    auto_closed = n("automaticallyClosed")
    responded = chat_ops + containment
    events = total_events(stats["ocsfStatistics"])
    category_stats = as_list(raw.category_class_stats)
    most_attacked_endpoints, most_attacked_identities = rank_attack_surface(raw.detection_assets)

    return Report(
        company_name=as_str(as_dict(raw.team).get("name"), "Unknown Team"),
        report_period_label=period_label or "",
        report_period=period_label or f"Last {period.days} Days",
        days=period.days,
        period=period,
        branding=branding,
        executive_summary=executive_summary(
            events, stats["billableEndpoints"], stats["billableUsers"],
            total, auto_closed, escalated, responded,
        ),
        billable_users=stats["billableUsers"],
        billable_endpoints=stats["billableEndpoints"],
        detections=DetectionSummary(
            total=total,
            historic=n("historicDetections"),
            escalated=escalated,
            escalated_percent=percent(escalated, total),
            chat_ops=chat_ops,
            chat_ops_percent=percent(chat_ops, total),
            containment=containment,
            containment_percent=percent(containment, total),
            auto_closed=auto_closed,
        ),
        verdict_accuracy=VerdictAccuracy(
            verdicted_malicious=n("verdictedMalicious"),
            confirmed_malicious=n("confirmedMalicious"),
            true_positives=n("truePositiveDetections"),
            true_positives_percent=percent(n("truePositiveDetections"), escalated),
            false_positives=n("falsePositiveDetections"),
            false_positives_percent=percent(n("falsePositiveDetections"), escalated),
        ),
        potential_actions=PotentialActions(
            would_escalate=n("potentialEscalatedDetections"),
            would_chat_ops=n("potentialChatOpsDetections"),
            would_contain=n("potentialContainmentDetections"),
        ),
        events_by_integration=events_by_integration(stats["ocsfStatistics"]),
        endpoints_by_os=bucket_operating_systems(stats["operatingSystems"]),
        most_attacked_endpoints=most_attacked_endpoints,
        most_attacked_identities=most_attacked_identities,
        mean_time_metrics=MeanTimeMetrics(
            mttr=format_time_metric(raw.mttr),
            mttd=format_time_metric(raw.mttd),
            mttv=format_time_metric(raw.mttv),
            mttc=format_time_metric(raw.mttc),
        ),
        funnel_data=FunnelData(total=events, detections=total, cases=escalated, responded=responded),
        cases_by_severity=count_cases_by_severity(stats["severityStats"]),
        suspicious_login_locations=top_locations(stats["suspiciousLoginLocations"]),
        detection_locations=top_locations(stats["detectionLocations"]),
        integrations=summarize_integrations(raw.integrations),
        detection_stats_by_category_class=category_class_breakdown(category_stats),
        mapped_detection_stats=map_detection_categories(category_stats, total),
        escalated_cases=select_escalated_cases(raw.cases, now),
        dark_web_report=build_dark_web_report(raw.private_credential_cases, raw.public_credential_cases, now),
    )


async def get_report_data(
    api_key: str,
    timeframe: Timeframe,
    team_id: Optional[str] = None,
    custom_colors: Optional[CustomColors] = None,
    hide_powered_by: Optional[bool] = None,
    *,
    http: Http,
    base_url: str = WIRESPEED_BASE,
    default_logo: str = DEFAULT_LOGO,
    theme: str = "light",
    provider: str = "wirespeed",
    now: Optional[datetime] = None,
) -> Report:
    """Build one report. Any remote failure aborts the whole report."""
    if not api_key:
        raise ValidationError("API key is required")
    period = normalize_period(timeframe.start_date, timeframe.end_date, now)

    factory = get_provider(provider)
    api = factory(api_key, http, base_url)
    branding = None

    if team_id:
        sp_team, logos = await join(api.get_current_team(), api.get_platform_logos())
        switched = await api.switch_team(team_id)
        token = as_str(as_dict(switched).get("accessToken"))
        if not token:
            raise TransportError(None, "Team switch did not return an access token")
        api = factory(token, http, base_url)
        branding = build_branding(sp_team, logos, default_logo, hide_powered_by, custom_colors, theme)
        logger.info(f"Switched to team {team_id}")

    raw = await fetch_all(api, period)
    report = assemble_report(raw, period, timeframe.period_label, branding, now)
    logger.info(
        f"Assembled report for {report.company_name}: {period.start_date} → {period.end_date} ({period.days} days)"
    )
    return report
