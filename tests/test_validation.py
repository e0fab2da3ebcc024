from dataclasses import replace

import pytest

from creative_generation.errors import ValidationError
from creative_generation.models import Product
from creative_generation.validation import (
    check_locale_code,
    is_valid_language_code,
    is_valid_region_code,
    validate_brief,
)


@pytest.mark.parametrize("code", ["en-US", "fr-CA", "de-DE", "ja-JP", "pt-BR", "es-MX", "en-us", "fr-ca"])
def test_accepts_well_formed_locale_codes(code):
    assert check_locale_code(code) is None


@pytest.mark.parametrize(
    "code, fragment",
    [
        ("enUS", "format 'lang-country'"),
        ("en", "format 'lang-country'"),
        ("-US", "format 'lang-country'"),
        ("en-", "format 'lang-country'"),
        ("xx-US", "language code portion 'xx'"),
        ("eng-US", "language code portion 'eng'"),
        ("EN-US", "language code portion 'EN'"),
        ("en-XX", "country code portion 'XX'"),
        ("en-USA", "country code portion 'USA'"),
    ],
)
def test_rejects_malformed_locale_codes(code, fragment):
    problem = check_locale_code(code)
    assert problem is not None
    assert fragment in problem


def test_code_table_lookups():
    assert is_valid_language_code("en")
    assert not is_valid_language_code("zz")
    assert is_valid_region_code("GB")
    assert is_valid_region_code("gb")
    assert not is_valid_region_code("UK")


def test_valid_brief_passes(brief):
    assert validate_brief(brief) is None


def test_invalid_region_is_a_validation_error(brief):
    with pytest.raises(ValidationError) as excinfo:
        validate_brief(replace(brief, target_region="english"))
    assert len(excinfo.value.messages) == 1
    assert "targetRegion" in excinfo.value.messages[0]


def test_all_problems_are_reported_together(brief):
    bad = replace(
        brief,
        name="",
        target_region="en-XX",
        products=(Product(name="", description=""), Product(name="Ok", description="  ")),
    )
    with pytest.raises(ValidationError) as excinfo:
        validate_brief(bad)

    messages = excinfo.value.messages
    assert "name must be a non-empty string" in messages
    assert "products[0].name must be a non-empty string" in messages
    assert "products[0].description must be a non-empty string" in messages
    assert "products[1].description must be a non-empty string" in messages
    assert any("country code portion 'XX'" in m for m in messages)


def test_brief_without_products_is_rejected(brief):
    with pytest.raises(ValidationError) as excinfo:
        validate_brief(replace(brief, products=()))
    assert "products must contain at least one product" in excinfo.value.messages
