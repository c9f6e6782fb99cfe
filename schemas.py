from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, List, Dict, Optional


class CamelModel(BaseModel):
    # wire format is camelCase; Python attributes stay snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# inbound

class Timeframe(CamelModel):
    start_date: str
    end_date: str
    period_label: Optional[str] = None

class CustomColors(CamelModel):
    primary: Optional[str] = None
    secondary: Optional[str] = None

class ReportRequest(CamelModel):
    api_key: Optional[str] = None
    timeframe: Timeframe
    team_id: Optional[str] = None
    custom_colors: Optional[CustomColors] = None
    hide_powered_by: Optional[bool] = None

class TeamsRequest(CamelModel):
    api_key: Optional[str] = None

class TeamsResponse(CamelModel):
    is_service_provider: bool = False
    teams: List[Dict[str, Any]] = []


# report

class ReportPeriod(CamelModel):
    start_date: str  # 23-char UTC, ms precision
    end_date: str
    days: int = 1

class Branding(CamelModel):
    logo: str
    logo_light: Optional[str] = None
    logo_dark: Optional[str] = None
    sp_name: str = ""
    support_email: Optional[str] = None
    hide_powered_by: Optional[bool] = None
    colors: Optional[CustomColors] = None
    theme: str = "light"

class DetectionSummary(CamelModel):
    total: int = 0
    historic: int = 0
    escalated: int = 0
    escalated_percent: str = "0%"
    chat_ops: int = 0
    chat_ops_percent: str = "0%"
    containment: int = 0
    containment_percent: str = "0%"
    auto_closed: int = 0

class VerdictAccuracy(CamelModel):
    verdicted_malicious: int = 0
    confirmed_malicious: int = 0
    true_positives: int = 0
    true_positives_percent: str = "0%"
    false_positives: int = 0
    false_positives_percent: str = "0%"

class PotentialActions(CamelModel):
    would_escalate: int = 0
    would_chat_ops: int = 0
    would_contain: int = 0

class IntegrationEvents(CamelModel):
    name: str = "Unknown Integration"
    processed: str = "0.00 MB"
    count: str = "0"
    count_value: int = 0

class EndpointsByOS(CamelModel):
    windows: int = 0
    macos: int = 0
    linux: int = 0
    mobile: int = 0
    other: int = 0

class RankedAsset(CamelModel):
    name: str
    count: int

class MeanTimeMetrics(CamelModel):
    mttr: str = "0ms"
    mttd: str = "0ms"
    mttv: str = "0ms"
    mttc: str = "0ms"

class FunnelData(CamelModel):
    total: int = 0
    detections: int = 0
    cases: int = 0
    responded: int = 0

class CasesBySeverity(CamelModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    informational: int = 0

class LocationCount(CamelModel):
    country: str = "Unknown"
    count: int = 0

class IntegrationSummary(CamelModel):
    name: str
    types: List[str] = []
    platform: str = ""
    enabled: bool = False
    logo: str = ""

class CategoryClassStat(CamelModel):
    category_class: str = "OTHER"
    display_name: str = "Other"
    count: int = 0
    percentage: float = 0

class MappedDetectionStat(CamelModel):
    category: str
    percentage: float = 0
    count: int = 0

class EscalatedCase(CamelModel):
    id: str = ""
    sid: str = ""
    title: str = ""
    severity: str = "INFORMATIONAL"
    status: str = "CLOSED"
    created_at: str
    response: str

class ExposureLeak(CamelModel):
    date: str
    source: str = "Web Leak"
    type: str = "Unknown Exposure"
    severity: str = "LOW"  # HIGH/MEDIUM/LOW

class DarkWebReport(CamelModel):
    total_exposures: int = 0
    high_risk_exposures: int = 0
    compromised_accounts: int = 0  # approximate: one exposure case per account
    recent_leaks: List[ExposureLeak] = []

class Report(CamelModel):
    company_name: str = "Unknown Team"
    report_period_label: str = ""
    report_period: str
    days: int = 1
    period: ReportPeriod
    branding: Optional[Branding] = None
    executive_summary: str
    billable_users: int = 0
    billable_endpoints: int = 0
    detections: DetectionSummary = DetectionSummary()
    verdict_accuracy: VerdictAccuracy = VerdictAccuracy()
    potential_actions: PotentialActions = PotentialActions()
    events_by_integration: List[IntegrationEvents] = []
    endpoints_by_os: EndpointsByOS = Field(default_factory=EndpointsByOS, alias="endpointsByOS")
    most_attacked_endpoints: List[RankedAsset] = []
    most_attacked_identities: List[RankedAsset] = []
    mean_time_metrics: MeanTimeMetrics = MeanTimeMetrics()
    funnel_data: FunnelData = FunnelData()
    cases_by_severity: CasesBySeverity = CasesBySeverity()
    suspicious_login_locations: List[LocationCount] = []
    detection_locations: List[LocationCount] = []
    integrations: List[IntegrationSummary] = []
    detection_stats_by_category_class: List[CategoryClassStat] = []
    mapped_detection_stats: List[MappedDetectionStat] = []
    escalated_cases: List[EscalatedCase] = []
    dark_web_report: DarkWebReport = DarkWebReport()

    def to_wire(self) -> Dict[str, Any]:
        """camelCase dict with unset optionals (e.g. `branding`) omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
