from typing import Any, List, Optional

SEVERITY_RANK = {
    "CRITICAL": 0,
    "HIGH": 1,
    "MEDIUM": 2,
    "LOW": 3,
    "INFORMATIONAL": 4,
}
UNKNOWN_SEVERITY_RANK = 99

HIGH_RISK_SEVERITIES = frozenset({"CRITICAL", "HIGH"})

# first match wins
OS_BUCKETS = (
    ("windows", ("windows",)),
    ("macos", ("mac",)),
    ("linux", ("linux",)),
    ("mobile", ("ios", "android", "mobile")),
)
OS_FALLBACK_BUCKET = "other"

# keyword -> tag; every matching row contributes its tag
INTEGRATION_TYPE_RULES = (
    (("password",), "Identity"),
    (("mfa", "2fa", "otp"), "Identity"),
    (("email", "mail", "office 365", "google workspace"), "Email"),
    (("endpoint", "edr", "antivirus", "xdr"), "Endpoint"),
    (("user", "identity", "active directory", "entra", "okta", "duo"), "Identity"),
    (("cloud", "aws", "azure", "gcp"), "Cloud"),
    (("network", "firewall", "vpn", "dns"), "Network"),
    (("saas", "application"), "SaaS"),
)
INTEGRATION_FALLBACK_TYPE = "Other"

# internal/system platforms never listed as customer integrations
EXCLUDED_PLATFORMS = frozenset({
    "have-i-been-pwned",
    "ipinfo",
    "reversing-labs",
    "wirespeed",
    "sms",
    "slack",
    "email",
    "microsoft-teams",
})

# generic ingest platforms are named by the label the customer configured
GENERIC_INGEST_PLATFORMS = frozenset({"generic-json", "generic-syslog"})

# (categoryClass key, output label)
FIXED_DETECTION_CATEGORIES = (
    ("endpoint", "Endpoint"),
    ("identity", "Identity"),
    ("cloud", "Cloud"),
    ("email", "Email"),
    ("network", "Network"),
    ("data", "Data Loss"),
    ("other", "Other"),
)


def severity_rank(severity: Any) -> int:
    return SEVERITY_RANK.get(severity, UNKNOWN_SEVERITY_RANK) if isinstance(severity, str) else UNKNOWN_SEVERITY_RANK


def is_high_risk(severity: Any) -> bool:
    return isinstance(severity, str) and severity in HIGH_RISK_SEVERITIES


def leak_severity(severity: Any) -> str:
    """Collapse a case severity to the HIGH/MEDIUM/LOW scale used for leaks."""
    if is_high_risk(severity):
        return "HIGH"
    if severity == "MEDIUM":
        return "MEDIUM"
    return "LOW"


def classify_os(label: Optional[str]) -> str:
    name = (label or "").lower()
    for bucket, needles in OS_BUCKETS:
        if any(n in name for n in needles):
            return bucket
    return OS_FALLBACK_BUCKET


def integration_types(description: Optional[str]) -> List[str]:
    desc = (description or "").lower()
    types: List[str] = []
    for keywords, tag in INTEGRATION_TYPE_RULES:
        if tag not in types and any(k in desc for k in keywords):
            types.append(tag)
    return types or [INTEGRATION_FALLBACK_TYPE]
