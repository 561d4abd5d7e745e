"""Unit tests for the name/type lookup tables."""

import pytest

from factorygen.mapping import (
    FAKEABLE_NAMES,
    FAKEABLE_TYPES,
    Raw,
    faker_prefix,
    is_known_provider,
    map_by_name,
    map_by_type,
    map_enum,
    required_imports,
    sub_factory,
)


class TestFakerPrefix:
    """Test declaration rendering."""

    def test_provider_only(self):
        assert faker_prefix("name") == 'factory.Faker("name")'

    def test_keyword_arguments(self):
        assert faker_prefix("pystr", max_chars=10) == 'factory.Faker("pystr", max_chars=10)'
        assert (
            faker_prefix("country_code", representation="alpha-3")
            == 'factory.Faker("country_code", representation="alpha-3")'
        )

    def test_raw_arguments_are_verbatim(self):
        rendered = faker_prefix("date_time", tzinfo=Raw("datetime.timezone.utc"))
        assert rendered == 'factory.Faker("date_time", tzinfo=datetime.timezone.utc)'


class TestMapByName:
    """Test column-name lookups."""

    @pytest.mark.parametrize(
        "column,provider",
        [
            ("email", "safe_email"),
            ("email_address", "safe_email"),
            ("town", "city"),
            ("lang", "language_code"),
            ("zip", "postcode"),
            ("address2", "secondary_address"),
            ("request_ip", "ipv4"),
            ("remember_token", "pystr"),
        ],
    )
    def test_known_names(self, column, provider):
        assert f'"{provider}"' in map_by_name(column)

    def test_unknown_name(self):
        assert map_by_name("favourite_colour") is None

    def test_overrides_win(self):
        assert map_by_name("email", {"email": "company_email"}) == 'factory.Faker("company_email")'
        assert map_by_name("nickname", {"nickname": "first_name"}) == 'factory.Faker("first_name")'


class TestMapByType:
    """Test column-type lookups."""

    def test_integer_family_share_a_provider(self):
        assert map_by_type("integer") == map_by_type("bigint") == map_by_type("smallint")

    def test_timezone_aware_datetime(self):
        assert "tzinfo=datetime.timezone.utc" in map_by_type("datetimetz")
        assert "tzinfo" not in map_by_type("datetime")

    def test_unknown_or_missing_type(self):
        assert map_by_type("geometry") is None
        assert map_by_type(None) is None


class TestHelpers:
    """Test enum, SubFactory and import helpers."""

    def test_map_enum_lists_values(self):
        assert map_enum(["admin", "member"]) == (
            'factory.Faker("random_element", elements=["admin", "member"])'
        )

    def test_sub_factory_is_lazy_string(self):
        assert sub_factory("tests.factories.user_factory.UserFactory") == (
            'factory.SubFactory("tests.factories.user_factory.UserFactory")'
        )

    def test_required_imports(self):
        assert required_imports([map_by_type("datetimetz"), map_by_name("email")]) == ["import datetime"]
        assert required_imports([map_by_name("email")]) == []


class TestProviders:
    """Every canned expression must name a real Faker provider."""

    @pytest.mark.parametrize("expression", sorted(set(FAKEABLE_NAMES.values()) | set(FAKEABLE_TYPES.values())))
    def test_provider_exists(self, expression):
        provider = expression.split('"')[1]
        assert is_known_provider(provider)

    def test_unknown_provider(self):
        assert not is_known_provider("definitely_not_a_provider")
