"""Validation utilities for profile, company and job input."""

import re
from datetime import datetime
from typing import Any, Optional

from email_validator import validate_email as _validate_email, EmailNotValidError

from core.utils.datetime import is_past


E164_PATTERN = re.compile(r'^\+?[1-9]\d{1,14}$')

URL_PATTERN = re.compile(
    r'^https?://'  # http:// or https://
    r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|'  # domain...
    r'localhost|'  # localhost...
    r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'  # ...or ip
    r'(?::\d+)?'  # optional port
    r'(?:/?|[/?]\S+)$', re.IGNORECASE
)

SOCIAL_PLATFORMS = ("LinkedIn", "Twitter", "GitHub", "Portfolio")


def validate_email(email: str) -> tuple[bool, Optional[str]]:
    """
    Validate email address format.

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, normalized_email or error_message)
    """
    try:
        validation = _validate_email(email, check_deliverability=False)
        return True, validation.normalized
    except EmailNotValidError as e:
        return False, str(e)


def validate_phone(phone: str) -> tuple[bool, Optional[str]]:
    """
    Validate an E.164 phone number (optional leading +, up to 15 digits).

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not phone:
        return False, "Phone number is required"

    if not E164_PATTERN.match(phone):
        return False, "Phone number must be in E.164 format"

    return True, None


def validate_url(url: str) -> tuple[bool, Optional[str]]:
    """
    Validate URL format.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url:
        return False, "URL is required"

    if not URL_PATTERN.match(url):
        return False, "Invalid URL format"

    return True, None


def validate_social_links(links: list[dict[str, Any]]) -> tuple[bool, Optional[str]]:
    """Each link needs a known platform and a valid URL; one link per platform."""
    seen = set()
    for link in links:
        platform = link.get("platform")
        if platform not in SOCIAL_PLATFORMS:
            return False, f"Unsupported social platform: {platform}"
        if platform in seen:
            return False, f"Duplicate social link for {platform}"
        seen.add(platform)
        ok, error = validate_url(link.get("url", ""))
        if not ok:
            return False, f"{platform}: {error}"
    return True, None


def validate_salary_range(
    salary_min: Optional[int], salary_max: Optional[int]
) -> tuple[bool, Optional[str]]:
    if salary_min is not None and salary_min < 0:
        return False, "Minimum salary cannot be negative"
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        return False, "Minimum salary cannot exceed maximum salary"
    return True, None


def validate_deadline(deadline: Optional[datetime]) -> tuple[bool, Optional[str]]:
    if deadline is not None and is_past(deadline):
        return False, "Application deadline must be in the future"
    return True, None
