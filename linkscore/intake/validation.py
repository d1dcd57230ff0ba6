"""
Submission validation and sanitization.

Turns raw intake fields into CampaignParameters or raises ValidationError
with a message that can be shown to the user as-is.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from email_validator import EmailNotValidError, validate_email

from linkscore.collector.locations import get_location, is_known_location
from linkscore.errors import ValidationError

MIN_MONTHLY_SPEND = 1000
MIN_INVESTMENT_MONTHS = 6
MAX_INVESTMENT_MONTHS = 120
MIN_KEYWORDS = 2
MAX_KEYWORDS = 5
MAX_KEYWORD_LENGTH = 80
MAX_COMPANY_LENGTH = 200

DOMAIN_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)+$")
BLOCKED_TLDS = (".tk", ".ml", ".cf", ".ga", ".pw")
DISPOSABLE_EMAIL_DOMAINS = {"tempmail.com", "throwaway.email", "10minutemail.com", "mailinator.com", "guerrillamail.com"}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f<>]")


@dataclass
class CampaignParameters:
    """Validated, immutable inputs for one analysis."""
    domain: str
    location: str
    location_code: int
    monthly_spend: float
    investment_months: int
    keywords: List[str] = field(default_factory=list)
    email: Optional[str] = None
    company_name: Optional[str] = None

    @property
    def total_investment(self) -> float:
        return self.monthly_spend * self.investment_months


def sanitize_text(value: Any, max_length: int) -> str:
    if value is None:
        return ""
    cleaned = _CONTROL_CHARS.sub("", str(value))
    return " ".join(cleaned.split())[:max_length]


def sanitize_domain(raw: Any) -> str:
    """
    Normalize a user-entered domain: strip protocol, www., path, port and case.

    Raises:
        ValidationError: Not a plausible, supported domain
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("Domain is required")

    cleaned = raw.strip().lower()
    cleaned = re.sub(r"^[a-z]+://", "", cleaned)
    cleaned = re.split(r"[/?#]", cleaned, maxsplit=1)[0]
    cleaned = cleaned.split("@")[-1].split(":")[0].rstrip(".")
    while cleaned.startswith("www."):
        cleaned = cleaned[4:]

    if len(cleaned) < 4 or len(cleaned) > 253:
        raise ValidationError("Invalid domain length")
    if not DOMAIN_PATTERN.match(cleaned):
        raise ValidationError("Invalid domain name format")
    if cleaned.endswith(BLOCKED_TLDS):
        raise ValidationError("Domain not supported for analysis")
    return cleaned


def sanitize_email(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("Email is required")
    try:
        email = validate_email(raw.strip(), check_deliverability=False).normalized
    except EmailNotValidError:
        raise ValidationError("Please enter a valid email address")
    if email.rsplit("@", 1)[-1].lower() in DISPOSABLE_EMAIL_DOMAINS:
        raise ValidationError("Disposable email addresses are not allowed")
    return email


def sanitize_keywords(raw: Any) -> List[str]:
    """2-5 distinct, non-empty keywords, order preserved."""
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("Keywords must be a list")

    keywords: List[str] = []
    for item in raw:
        if not isinstance(item, str):
            raise ValidationError("Invalid keyword format")
        cleaned = sanitize_text(item, MAX_KEYWORD_LENGTH).lower()
        if cleaned and cleaned not in keywords:
            keywords.append(cleaned)

    if not MIN_KEYWORDS <= len(keywords) <= MAX_KEYWORDS:
        raise ValidationError(f"Please provide {MIN_KEYWORDS}-{MAX_KEYWORDS} keywords")
    return keywords


def validate_submission(
    domain: Any,
    location: Any,
    monthly_spend: Any,
    investment_months: Any,
    keywords: Any,
    email: Any = None,
    company_name: Any = None,
    require_email: bool = True,
) -> CampaignParameters:
    """
    Validate a full submission.

    Raises:
        ValidationError: First problem found, in field order
    """
    clean_domain = sanitize_domain(domain)
    clean_email = sanitize_email(email) if (require_email or email) else None

    if not isinstance(location, str) or not is_known_location(location):
        raise ValidationError("Please select a valid location")
    market = get_location(location)

    try:
        spend = float(monthly_spend)
    except (TypeError, ValueError):
        raise ValidationError("Monthly spend must be a number")
    if not math.isfinite(spend):
        raise ValidationError("Monthly spend must be a number")
    if spend < MIN_MONTHLY_SPEND:
        raise ValidationError("Monthly spend must be at least $1,000")

    if isinstance(investment_months, bool) or not isinstance(investment_months, (int, float)) \
            or int(investment_months) != investment_months:
        raise ValidationError("Investment period must be a whole number of months")
    months = int(investment_months)
    if months < MIN_INVESTMENT_MONTHS:
        raise ValidationError("Investment period must be at least 6 months")
    if months > MAX_INVESTMENT_MONTHS:
        raise ValidationError("Investment period must be at most 120 months")

    return CampaignParameters(
        domain=clean_domain,
        location=market.key,
        location_code=market.code,
        monthly_spend=spend,
        investment_months=months,
        keywords=sanitize_keywords(keywords),
        email=clean_email,
        company_name=sanitize_text(company_name, MAX_COMPANY_LENGTH) or None,
    )
