"""Column name/type to factory_boy declaration lookup tables.

Expressions are returned as Python source strings ready to be dropped into
the generated factory class body, e.g. ``factory.Faker("safe_email")``.
"""

import json
from functools import lru_cache
from typing import Any, Iterable, Mapping, Optional

from faker import Faker


def literal(value: Any) -> str:
    """Render a value as Python source, strings double-quoted."""
    if isinstance(value, Raw):
        return value.source
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(literal(item) for item in value) + "]"
    return repr(value)


def faker_prefix(provider: str, **kwargs: Any) -> str:
    """Build a ``factory.Faker`` declaration for a Faker provider."""
    args = [literal(provider)]
    args.extend(f"{key}={literal(value)}" for key, value in kwargs.items())
    return f"factory.Faker({', '.join(args)})"


class Raw:
    """Source text rendered verbatim as a keyword argument."""

    def __init__(self, source: str):
        self.source = source


FAKEABLE_NAMES: dict[str, str] = {
    "language": faker_prefix("language_code"),
    "lang": faker_prefix("language_code"),
    "locale": faker_prefix("locale"),
    "city": faker_prefix("city"),
    "town": faker_prefix("city"),
    "town_city": faker_prefix("city"),
    "state": faker_prefix("state"),
    "region": faker_prefix("state"),
    "region_state": faker_prefix("state"),
    "company": faker_prefix("company"),
    "country": faker_prefix("country"),
    "description": faker_prefix("text"),
    "email": faker_prefix("safe_email"),
    "email_address": faker_prefix("safe_email"),
    "first_name": faker_prefix("first_name"),
    "firstname": faker_prefix("first_name"),
    "last_name": faker_prefix("last_name"),
    "lastname": faker_prefix("last_name"),
    "name": faker_prefix("name"),
    "full_name": faker_prefix("name"),
    "lat": faker_prefix("latitude"),
    "latitude": faker_prefix("latitude"),
    "lng": faker_prefix("longitude"),
    "longitude": faker_prefix("longitude"),
    "password": faker_prefix("password"),
    "phone": faker_prefix("phone_number"),
    "telephone": faker_prefix("phone_number"),
    "phone_number": faker_prefix("phone_number"),
    "postcode": faker_prefix("postcode"),
    "postal_code": faker_prefix("postcode"),
    "zip": faker_prefix("postcode"),
    "zip_postal_code": faker_prefix("postcode"),
    "slug": faker_prefix("slug"),
    "street": faker_prefix("street_name"),
    "address": faker_prefix("address"),
    "address1": faker_prefix("street_address"),
    "address2": faker_prefix("secondary_address"),
    "summary": faker_prefix("text"),
    "title": faker_prefix("sentence", nb_words=4),
    "subject": faker_prefix("sentence", nb_words=4),
    "note": faker_prefix("sentence"),
    "sentence": faker_prefix("sentence"),
    "url": faker_prefix("url"),
    "link": faker_prefix("url"),
    "href": faker_prefix("url"),
    "domain": faker_prefix("domain_name"),
    "user_name": faker_prefix("user_name"),
    "username": faker_prefix("user_name"),
    "currency": faker_prefix("currency_code"),
    "guid": faker_prefix("uuid4"),
    "uuid": faker_prefix("uuid4"),
    "iban": faker_prefix("iban"),
    "mac": faker_prefix("mac_address"),
    "ip": faker_prefix("ipv4"),
    "ipv4": faker_prefix("ipv4"),
    "ipv6": faker_prefix("ipv6"),
    "request_ip": faker_prefix("ipv4"),
    "user_agent": faker_prefix("user_agent"),
    "request_user_agent": faker_prefix("user_agent"),
    "iso3": faker_prefix("country_code", representation="alpha-3"),
    "hash": faker_prefix("sha256"),
    "sha256": faker_prefix("sha256"),
    "sha256_hash": faker_prefix("sha256"),
    "sha1": faker_prefix("sha1"),
    "sha1_hash": faker_prefix("sha1"),
    "md5": faker_prefix("md5"),
    "md5_hash": faker_prefix("md5"),
    "remember_token": faker_prefix("pystr", max_chars=10),
}

FAKEABLE_TYPES: dict[str, str] = {
    "string": faker_prefix("word"),
    "text": faker_prefix("text"),
    "date": faker_prefix("date_object"),
    "time": faker_prefix("time_object"),
    "guid": faker_prefix("uuid4"),
    "datetimetz": faker_prefix("date_time", tzinfo=Raw("datetime.timezone.utc")),
    "datetime": faker_prefix("date_time"),
    "integer": faker_prefix("random_int"),
    "bigint": faker_prefix("random_int"),
    "smallint": faker_prefix("random_int"),
    "decimal": faker_prefix("pydecimal", left_digits=8, right_digits=2),
    "float": faker_prefix("pyfloat"),
    "boolean": faker_prefix("pybool"),
    "json": faker_prefix("pydict"),
    "binary": faker_prefix("binary", length=16),
}

# Expression prefix -> import line the generated module needs for it
EXPRESSION_IMPORTS: dict[str, str] = {
    "datetime.": "import datetime",
}


def map_by_name(field: str, overrides: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Map a column name to a declaration, honouring configured overrides."""
    if overrides and field in overrides:
        return faker_prefix(overrides[field])
    return FAKEABLE_NAMES.get(field)


def map_by_type(type_name: Optional[str]) -> Optional[str]:
    return FAKEABLE_TYPES.get(type_name) if type_name else None


def map_enum(values: Iterable[Any]) -> str:
    """Pick one of the enum's values at random."""
    return faker_prefix("random_element", elements=[str(v) for v in values])


def sub_factory(factory_path: str) -> str:
    """Lazy SubFactory reference, resolved by factory_boy at build time."""
    return f"factory.SubFactory({literal(factory_path)})"


def required_imports(expressions: Iterable[str]) -> list[str]:
    """Import lines needed by the given expressions, in table order."""
    expressions = list(expressions)
    return [
        line
        for prefix, line in EXPRESSION_IMPORTS.items()
        if any(prefix in expression for expression in expressions)
    ]


@lru_cache(maxsize=1)
def _faker() -> Faker:
    return Faker()


def is_known_provider(provider: str) -> bool:
    """Whether Faker (default locale) exposes a provider method by this name."""
    try:
        return callable(getattr(_faker(), provider))
    except AttributeError:
        return False
