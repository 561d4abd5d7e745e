"""Column and relation introspection for SQLAlchemy models.

Columns come from the model's own ``Table`` metadata, or, when a database
URL is configured, are reflected from the live database.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from sqlalchemy import create_engine
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import NoInspectionAvailable, SQLAlchemyError
from sqlalchemy.orm import MANYTOONE
from sqlalchemy.orm.exc import UnmappedColumnError
from sqlalchemy.types import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    Integer,
    LargeBinary,
    Numeric,
    SmallInteger,
    String,
    Text,
    Time,
    TypeDecorator,
    TypeEngine,
    Uuid,
)

from factorygen.config import DatabaseConfig, FieldsConfig
from factorygen.logging_config import get_logger

logger = get_logger(__name__)

SUPPORTED_DRIVERS = ("mysql", "postgresql", "sqlite")

INTEGER_TYPES = ("integer", "bigint", "smallint")

# Checked in order: subclasses before their bases (Text < String, Float < Numeric)
_GENERIC_TYPES: tuple[tuple[type, str], ...] = (
    (Enum, "enum"),
    (Boolean, "boolean"),
    (BigInteger, "bigint"),
    (SmallInteger, "smallint"),
    (Integer, "integer"),
    (Float, "float"),
    (Numeric, "decimal"),
    (Date, "date"),
    (Time, "time"),
    (Uuid, "guid"),
    (Text, "text"),
    (String, "string"),
    (JSON, "json"),
    (LargeBinary, "binary"),
)


class DriverError(Exception):
    """Raised when a model's database cannot be inspected."""

    def __init__(self, driver: str, model_name: str, cause: Exception):
        self.driver = driver
        self.model_name = model_name
        self.cause = cause
        super().__init__(str(cause))

    @property
    def supported(self) -> bool:
        return self.driver in SUPPORTED_DRIVERS

    def user_message(self) -> str:
        if self.supported:
            return f"Database driver ({self.driver}) for {self.model_name} model is not configured properly!"
        return f"Database driver ({self.driver}) for {self.model_name} model is not supported."


@dataclass
class ColumnInfo:
    """Introspected column.

    ``name`` is the database column name; ``attribute`` is the mapped
    attribute key the model constructor accepts (None when unmapped).
    """

    name: str
    type_name: Optional[str]
    primary_key: bool = False
    autoincrement: bool = False
    enum_values: list[str] = field(default_factory=list)
    attribute: Optional[str] = None

    @property
    def key(self) -> str:
        return self.attribute or self.name


@dataclass
class RelationInfo:
    """A many-to-one relationship and the local attributes it populates."""

    key: str
    related: type
    local_keys: list[str]


def is_instantiable_model_class(cls: Any) -> bool:
    """True for concrete SQLAlchemy-mapped classes backed by a table."""
    if not isinstance(cls, type):
        return False
    if cls.__dict__.get("__abstract__", False):
        return False
    try:
        mapper = sa_inspect(cls)
    except NoInspectionAvailable:
        return False
    return getattr(mapper, "local_table", None) is not None and getattr(cls, "__table__", None) is not None


def column_type_name(type_: TypeEngine, custom_types: Optional[dict[str, str]] = None) -> Optional[str]:
    """Resolve a SQLAlchemy type to one of the generic type names.

    Custom database types (keyed by lowercase database type name) take
    precedence over the built-in resolution.
    """
    if custom_types:
        for candidate in (getattr(type_, "__visit_name__", ""), type(type_).__name__):
            mapped = custom_types.get(str(candidate).lower())
            if mapped:
                return mapped

    if isinstance(type_, TypeDecorator):
        return column_type_name(type_.impl, custom_types)

    if isinstance(type_, DateTime):
        return "datetimetz" if type_.timezone else "datetime"

    for sa_type, name in _GENERIC_TYPES:
        if isinstance(type_, sa_type):
            return name

    return None


def attribute_keys(model: type) -> dict[str, str]:
    """Map the model table's column names to their mapped attribute keys."""
    mapper = sa_inspect(model)
    keys = {}
    for column in model.__table__.columns:
        try:
            keys[column.name] = mapper.get_property_by_column(column).key
        except UnmappedColumnError:
            continue
    return keys


def enum_values(type_: TypeEngine) -> list[str]:
    if isinstance(type_, TypeDecorator):
        return enum_values(type_.impl)
    if isinstance(type_, Enum):
        return list(type_.enums)
    return []


class TableInspector:
    """Reads a model's columns and many-to-one relations.

    Engines are created lazily and cached per URL, so one generation run
    connects to each database at most once.
    """

    def __init__(self, database: DatabaseConfig, fields: FieldsConfig):
        self.database = database
        self.fields = fields
        self._engines: dict[str, Engine] = {}

    def table_name(self, model: type) -> tuple[Optional[str], str]:
        """Return ``(schema, prefixed table name)`` for a model."""
        table = model.__table__
        name = f"{self.database.table_prefix}{table.name}"
        schema = table.schema
        if "." in name:
            schema, name = name.split(".", 1)
        return schema, name

    def database_url(self, model: type) -> Optional[str]:
        bind_key = getattr(model, "__bind_key__", None)
        if bind_key and bind_key in self.database.binds:
            return self.database.binds[bind_key]
        return self.database.url

    def columns(self, model: type) -> list[ColumnInfo]:
        """List the model's columns.

        Raises:
            DriverError: If a configured database cannot be inspected
        """
        url = self.database_url(model)
        if url is None:
            return self._columns_from_metadata(model)
        return self._columns_from_database(model, url)

    def _columns_from_metadata(self, model: type) -> list[ColumnInfo]:
        table = model.__table__
        custom_types = self._custom_types(None)
        autoincrement_column = table.autoincrement_column
        keys = attribute_keys(model)

        return [
            ColumnInfo(
                name=column.name,
                type_name=column_type_name(column.type, custom_types),
                primary_key=column.primary_key,
                autoincrement=column is autoincrement_column,
                enum_values=enum_values(column.type),
                attribute=keys.get(column.name),
            )
            for column in table.columns
        ]

    def _columns_from_database(self, model: type, url: str) -> list[ColumnInfo]:
        driver = url.split(":", 1)[0].split("+", 1)[0]
        try:
            driver = make_url(url).get_backend_name()
            inspector = sa_inspect(self._engine(url))
        except (SQLAlchemyError, ImportError) as e:
            raise DriverError(driver, model.__name__, e) from e

        schema, name = self.table_name(model)
        custom_types = self._custom_types(driver)

        reflected = inspector.get_columns(name, schema=schema) if inspector.has_table(name, schema=schema) else []
        if not reflected:
            logger.debug(f"No columns found for table {name}")
            return []

        primary_keys = set(inspector.get_pk_constraint(name, schema=schema).get("constrained_columns") or [])
        model_columns = {column.name: column for column in model.__table__.columns}
        keys = attribute_keys(model)

        columns = []
        for data in reflected:
            column_name = data["name"]
            type_name = column_type_name(data["type"], custom_types)
            is_pk = column_name in primary_keys
            values = enum_values(data["type"])
            if not values and column_name in model_columns:
                values = enum_values(model_columns[column_name].type)

            columns.append(
                ColumnInfo(
                    name=column_name,
                    type_name=type_name,
                    primary_key=is_pk,
                    autoincrement=(
                        is_pk
                        and len(primary_keys) == 1
                        and type_name in INTEGER_TYPES
                        and data.get("autoincrement", "auto") is not False
                    ),
                    enum_values=values,
                    attribute=keys.get(column_name),
                )
            )
        return columns

    def _engine(self, url: str) -> Engine:
        if url not in self._engines:
            self._engines[url] = create_engine(url)
        return self._engines[url]

    def _custom_types(self, driver: Optional[str]) -> dict[str, str]:
        """Custom types for one dialect; all dialects merged when unknown."""
        custom = self.database.custom_types
        if driver is not None:
            types = custom.get(driver, {})
        else:
            types = {}
            for dialect_types in custom.values():
                types.update(dialect_types)
        return {str(k).lower(): v for k, v in types.items()}

    def is_field_fakeable(self, column: ColumnInfo, model: type) -> bool:
        if column.primary_key and column.autoincrement:
            return False
        if getattr(model, "__timestamps__", True) and column.name in (
            self.fields.created_at,
            self.fields.updated_at,
        ):
            return False
        if column.name == self.fields.deleted_at:
            return False
        return column.name not in self.fields.exclude

    def relations(self, model: type) -> list[RelationInfo]:
        """Many-to-one relationships declared on the model."""
        mapper = sa_inspect(model)
        keys = attribute_keys(model)
        found = []
        for rel in mapper.relationships:
            if rel.direction is not MANYTOONE or rel.viewonly:
                continue
            found.append(
                RelationInfo(
                    key=rel.key,
                    related=rel.mapper.class_,
                    local_keys=sorted(keys.get(column.name, column.name) for column in rel.local_columns),
                )
            )
        return found

    def dispose(self) -> None:
        for engine in self._engines.values():
            engine.dispose()
        self._engines.clear()


def fakeable_columns(inspector: TableInspector, model: type, columns: Iterable[ColumnInfo]) -> list[ColumnInfo]:
    return [column for column in columns if inspector.is_field_fakeable(column, model)]
