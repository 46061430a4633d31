"""Unit tests for ZIP lookup."""

import pytest
import yaml

from paperboy.services.zip_lookup import StaticZipLookup, looks_numeric, normalize_zip
from paperboy.utils.exceptions import ConfigurationError

TABLE = {
    "94103": "San Francisco, CA",
    "94110": "San Francisco, CA",
    "02108": "Boston, MA",
    "97201": "Portland, OR",
    "04101": "Portland, ME",
    "10001": "New York, NY",
}


@pytest.fixture
def lookup():
    """A lookup over an in-memory table."""
    return StaticZipLookup(table=TABLE)


@pytest.mark.parametrize("code,expected", [
    ("94103", "94103"),
    ("94103-1234", "94103"),
    (" 02108 ", "02108"),
    ("941", "941"),
    ("abc", ""),
])
def test_normalize_zip(code, expected):
    """ZIP+4 codes are reduced to their first five digits."""
    assert normalize_zip(code) == expected


@pytest.mark.parametrize("text,expected", [
    ("94103", True),
    ("94103-1234", True),
    ("San Francisco", False),
    ("941o3", False),
])
def test_looks_numeric(text, expected):
    """Digits, dashes and spaces look like a ZIP code."""
    assert looks_numeric(text) is expected


def test_exact_lookup(lookup):
    """Known ZIPs resolve directly."""
    assert lookup.lookup("94103") == "San Francisco, CA"
    assert lookup.lookup("94103-1234") == "San Francisco, CA"


def test_prefix_fallback(lookup):
    """Unknown ZIPs fall back to the nearest shared prefix."""
    assert lookup.lookup("02199") == "Boston, MA"
    assert lookup.lookup("97999") == "Portland, OR"


def test_unmapped_returns_empty_string():
    """A ZIP sharing no prefix with the table is a miss."""
    lookup = StaticZipLookup(table={"94103": "San Francisco, CA"})
    assert lookup.lookup("10001") == ""
    assert lookup.lookup("") == ""


def test_suggest_cities_prefix_case_insensitive(lookup):
    """Suggestions match case-insensitively and are unique."""
    assert lookup.suggest_cities("port", 8) == ["Portland, OR", "Portland, ME"]
    assert lookup.suggest_cities("SAN", 8) == ["San Francisco, CA"]


def test_suggest_cities_limit(lookup):
    """The limit caps the number of suggestions."""
    assert lookup.suggest_cities("Portland", 1) == ["Portland, OR"]
    assert lookup.suggest_cities("", 8) == []


def test_load_from_yaml(tmp_path):
    """The table is read lazily from YAML, integer keys included."""
    table_file = tmp_path / "zips.yaml"
    table_file.write_text(yaml.safe_dump({"02108": "Boston, MA", 10001: "New York, NY"}))

    lookup = StaticZipLookup(path=table_file)
    assert lookup.lookup("02108") == "Boston, MA"
    assert lookup.lookup("10001") == "New York, NY"
    assert len(lookup) == 2


def test_missing_yaml_misses(tmp_path):
    """A missing table makes every lookup a miss."""
    lookup = StaticZipLookup(path=tmp_path / "absent.yaml")
    assert lookup.lookup("02108") == ""


def test_malformed_yaml_raises(tmp_path):
    """A table that is not a mapping is a configuration error."""
    table_file = tmp_path / "zips.yaml"
    table_file.write_text("- just\n- a list\n")

    with pytest.raises(ConfigurationError):
        StaticZipLookup(path=table_file).lookup("02108")


def test_corrupt_yaml_keeps_failing(tmp_path):
    """A table that cannot be parsed fails every lookup, not only the first."""
    table_file = tmp_path / "zips.yaml"
    table_file.write_text("02108: [unclosed\n")
    lookup = StaticZipLookup(path=table_file)

    with pytest.raises(ConfigurationError):
        lookup.lookup("02108")
    with pytest.raises(ConfigurationError):
        lookup.lookup("02108")
    with pytest.raises(ConfigurationError):
        lookup.suggest_cities("Bos", 5)


def test_from_config(config_manager, tmp_path):
    """The table path comes from location.zip_table."""
    table_file = tmp_path / "zips.yaml"
    table_file.write_text(yaml.safe_dump({"02108": "Boston, MA"}))
    config_manager.set("location.zip_table", str(table_file))

    assert StaticZipLookup.from_config(config_manager).lookup("02108") == "Boston, MA"
