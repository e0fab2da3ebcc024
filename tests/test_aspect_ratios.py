import pytest

from creative_generation.aspect_ratios import (
    ASPECT_SPECS,
    approximate,
    canonical_size,
    expanded_size,
    is_supported,
    is_valid_aspect_ratio,
    parse_aspect_ratio,
    resolve_aspect_ratios,
)
from creative_generation.errors import FormatError, UnsupportedRatioError


@pytest.mark.parametrize("w, h", [(1, 1), (16, 9), (21, 9), (3, 1000), (250, 7)])
def test_parse_round_trips_positive_integers(w, h):
    assert parse_aspect_ratio(f"{w}:{h}") == (w, h)


@pytest.mark.parametrize(
    "text",
    ["", "16", "16:", ":9", "0:1", "1:0", "a:b", "1.5:1", "-1:1", "1:1:1", "16x9"],
)
def test_parse_rejects_malformed_ratios(text):
    with pytest.raises(FormatError):
        parse_aspect_ratio(text)
    assert not is_valid_aspect_ratio(text)


def test_supported_keys():
    assert is_supported("16:9")
    assert not is_supported("9:16")
    assert not is_supported("21:9")


@pytest.mark.parametrize("key", list(ASPECT_SPECS))
def test_approximate_is_identity_on_supported_keys(key):
    assert approximate(key) == key


@pytest.mark.parametrize(
    "ratio, expected",
    [
        ("21:9", "16:9"),
        ("2:1", "16:9"),
        ("9:16", "3:4"),
        ("1:2", "3:4"),
        ("5:4", "9:7"),
        ("2:2", "1:1"),
    ],
)
def test_approximate_picks_nearest_supported_ratio(ratio, expected):
    assert approximate(ratio) == expected


def test_approximate_rejects_malformed_input():
    with pytest.raises(FormatError):
        approximate("wide")


@pytest.mark.parametrize("key", list(ASPECT_SPECS))
def test_expanded_size_of_supported_key_is_stored_size(key):
    assert expanded_size(key) == ASPECT_SPECS[key]


@pytest.mark.parametrize(
    "ratio, expected",
    [
        ("21:9", (3104, 1330)),
        ("9:16", (1524, 2709)),
        ("2:1", (2874, 1437)),
        ("1:2", (1437, 2874)),
        ("5:4", (1136, 909)),
        ("2:2", (1024, 1024)),
    ],
)
def test_expanded_size_exact_values(ratio, expected):
    assert expanded_size(ratio) == expected


@pytest.mark.parametrize("ratio", ["21:9", "9:16", "2:1", "5:4", "3:2", "10:1"])
def test_expanded_size_preserves_ratio_and_area(ratio):
    w, h = parse_aspect_ratio(ratio)
    width, height = expanded_size(ratio)
    base_w, base_h = ASPECT_SPECS[approximate(ratio)]

    # Rounding each side moves the ratio by at most half a pixel per side.
    assert abs(width / height - w / h) <= (w / h) * (1 / height + 1 / width)
    assert abs(width * height - base_w * base_h) <= width + height


def test_canonical_size_surfaces_suggestion():
    assert canonical_size("16:9") == (2688, 1536)
    with pytest.raises(UnsupportedRatioError) as excinfo:
        canonical_size("21:9")
    assert excinfo.value.suggestion == "16:9"
    assert excinfo.value.size == (2688, 1536)
    assert "closest supported ratio is 16:9" in str(excinfo.value)


def test_resolve_substitutes_and_dedupes(caplog):
    resolved, substitutions = resolve_aspect_ratios(["1:1", "21:9", "16:9", "2:1"])

    assert resolved == ["1:1", "16:9"]
    assert substitutions == {"21:9": "16:9", "2:1": "16:9"}
    assert "Unsupported aspect ratio(s): 21:9, 2:1" in caplog.text


def test_resolve_keeps_supported_ratios_untouched(caplog):
    resolved, substitutions = resolve_aspect_ratios(["16:9", "1:1"])

    assert resolved == ["16:9", "1:1"]
    assert substitutions == {}
    assert "Unsupported" not in caplog.text
