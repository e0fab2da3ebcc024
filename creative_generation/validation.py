from __future__ import annotations

"""
Validation of parsed campaign briefs.

A brief that fails validation must stop the run before any Firefly or
scene planning call is made, so every problem is collected and reported
in one ValidationError.
"""

from typing import List, Optional

import pycountry

from .errors import ValidationError
from .models import CampaignBrief

LANGUAGE_LIST_URL = "https://localizely.com/iso-639-1-list"
COUNTRY_LIST_URL = "https://localizely.com/iso-3166-1-alpha-2-list"


def _lookup(database, code: str) -> Optional[object]:
    # Older pycountry releases raise KeyError instead of returning None.
    try:
        return database.get(alpha_2=code)
    except LookupError:
        return None


def is_valid_language_code(code: str) -> bool:
    """True for a lowercase ISO 639-1 two letter language code."""
    if len(code) != 2 or not code.isalpha() or not code.islower():
        return False
    return _lookup(pycountry.languages, code) is not None


def is_valid_region_code(code: str) -> bool:
    """True for an ISO 3166-1 alpha-2 country code, in either case."""
    if len(code) != 2 or not code.isalpha():
        return False
    return _lookup(pycountry.countries, code.upper()) is not None


def check_locale_code(value: str) -> Optional[str]:
    """Return a problem description for ``value``, or None if it is valid."""
    if not isinstance(value, str):
        return "targetRegion must be a string in the format 'lang-country'. Example: en-US"

    lang, sep, country = value.partition("-")
    if not sep or not lang or not country:
        return (
            "targetRegion must be in the format 'lang-country'. Example: en-US. "
            f"Refer to languages here: {LANGUAGE_LIST_URL} and country codes "
            f"here: {COUNTRY_LIST_URL}"
        )
    if not is_valid_language_code(lang):
        return (
            "targetRegion must be in the format 'lang-country' eg. en-US. Your "
            f"supplied language code portion '{lang}' is invalid. Refer to "
            f"languages here: {LANGUAGE_LIST_URL}"
        )
    if not is_valid_region_code(country):
        return (
            "targetRegion must be in the format 'lang-country' eg. en-US. Your "
            f"supplied country code portion '{country}' is invalid. Refer to "
            f"country codes here: {COUNTRY_LIST_URL}"
        )
    return None


def _is_blank(value) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_brief(brief: CampaignBrief) -> None:
    """
    Validate a brief's shape and locale code.

    Raises
    ------
    ValidationError
        Listing every field-level problem found.
    """
    problems: List[str] = []

    if _is_blank(brief.name):
        problems.append("name must be a non-empty string")
    if not isinstance(brief.target_audience, str):
        problems.append("targetAudience must be a string")
    if not isinstance(brief.campaign_message, str):
        problems.append("campaignMessage must be a string")

    locale_problem = check_locale_code(brief.target_region)
    if locale_problem:
        problems.append(locale_problem)

    if not brief.products:
        problems.append("products must contain at least one product")
    for idx, product in enumerate(brief.products or ()):
        if _is_blank(product.name):
            problems.append(f"products[{idx}].name must be a non-empty string")
        if _is_blank(product.description):
            problems.append(f"products[{idx}].description must be a non-empty string")

    if problems:
        raise ValidationError(problems)
