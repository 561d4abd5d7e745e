"""Unit tests for column and relation introspection."""

from pathlib import Path

import pytest
from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    create_engine,
)
from sqlalchemy.dialects.postgresql import CITEXT, INET
from sqlalchemy.types import TypeDecorator

from factorygen.config import DatabaseConfig, FieldsConfig
from factorygen.introspection import (
    ColumnInfo,
    DriverError,
    TableInspector,
    column_type_name,
    enum_values,
    is_instantiable_model_class,
)
from sampleapp.models import (
    Base,
    Invoice,
    Post,
    PostStatus,
    SoftDeleteModel,
    Tag,
    TimestampMixin,
    User,
)


class LowercaseString(TypeDecorator):
    impl = String
    cache_ok = True


@pytest.fixture
def inspector():
    return TableInspector(DatabaseConfig(), FieldsConfig())


class TestColumnTypeName:
    """Test SQLAlchemy type -> generic type name resolution."""

    @pytest.mark.parametrize(
        "type_,expected",
        [
            (String(10), "string"),
            (Text(), "text"),
            (Integer(), "integer"),
            (BigInteger(), "bigint"),
            (Numeric(10, 2), "decimal"),
            (Float(), "float"),
            (Boolean(), "boolean"),
            (Date(), "date"),
            (DateTime(), "datetime"),
            (DateTime(timezone=True), "datetimetz"),
            (Uuid(), "guid"),
            (Enum("a", "b", name="ab"), "enum"),
        ],
    )
    def test_builtin_types(self, type_, expected):
        assert column_type_name(type_) == expected

    def test_type_decorator_uses_impl(self):
        assert column_type_name(LowercaseString()) == "string"

    def test_unknown_type(self):
        assert column_type_name(INET()) is None

    def test_custom_types_take_precedence(self):
        assert column_type_name(INET(), {"inet": "string"}) == "string"
        assert column_type_name(CITEXT(), {"citext": "text"}) == "text"

    def test_enum_values(self):
        assert enum_values(Enum("admin", "member", name="role")) == ["admin", "member"]
        assert enum_values(Enum(PostStatus)) == ["DRAFT", "PUBLISHED"]
        assert enum_values(String()) == []


class TestIsInstantiableModelClass:
    """Test which classes count as models."""

    def test_mapped_models(self):
        assert is_instantiable_model_class(User)
        assert is_instantiable_model_class(Invoice)

    @pytest.mark.parametrize("cls", [Base, SoftDeleteModel, TimestampMixin, PostStatus, dict])
    def test_not_models(self, cls):
        assert not is_instantiable_model_class(cls)

    def test_non_class(self):
        assert not is_instantiable_model_class("sampleapp.models.user:User")


class TestMetadataColumns:
    """Test columns read from model metadata."""

    def test_user_columns(self, inspector):
        columns = {column.name: column for column in inspector.columns(User)}

        assert columns["id"].primary_key and columns["id"].autoincrement
        assert columns["email"].type_name == "string"
        assert columns["role"].enum_values == ["admin", "member"]
        assert columns["last_seen_at"].type_name == "datetimetz"
        assert "deleted_at" in columns
        assert "created_at" in columns

    def test_attribute_keys_for_renamed_columns(self, inspector):
        columns = {column.name: column for column in inspector.columns(Tag)}

        assert columns["type"].attribute == "kind"
        assert columns["class"].key == "class_"
        assert columns["metadata"].key == "metadata_"
        assert columns["user_ref"].key == "owner_id"
        assert columns["id"].key == "id"

    def test_unmapped_column_key_falls_back_to_name(self):
        assert ColumnInfo(name="legacy_flag", type_name="boolean").key == "legacy_flag"

    def test_fakeable_skips_autoincrement_and_timestamps(self, inspector):
        columns = {column.name: column for column in inspector.columns(User)}

        assert not inspector.is_field_fakeable(columns["id"], User)
        assert not inspector.is_field_fakeable(columns["created_at"], User)
        assert not inspector.is_field_fakeable(columns["updated_at"], User)
        assert not inspector.is_field_fakeable(columns["deleted_at"], User)
        assert inspector.is_field_fakeable(columns["email"], User)

    def test_timestamps_kept_when_model_opts_out(self, inspector):
        columns = {column.name: column for column in inspector.columns(Invoice)}
        assert inspector.is_field_fakeable(columns["created_at"], Invoice)

    def test_excluded_fields(self):
        inspector = TableInspector(DatabaseConfig(), FieldsConfig(exclude=["bio"]))
        column = ColumnInfo(name="bio", type_name="text")
        assert not inspector.is_field_fakeable(column, User)

    def test_non_incrementing_primary_key_is_fakeable(self, inspector):
        column = ColumnInfo(name="code", type_name="string", primary_key=True, autoincrement=False)
        assert inspector.is_field_fakeable(column, User)


class TestTableName:
    """Test prefixed and schema-qualified table names."""

    def test_plain(self, inspector):
        assert inspector.table_name(User) == (None, "users")

    def test_prefix(self):
        inspector = TableInspector(DatabaseConfig(table_prefix="app_"), FieldsConfig())
        assert inspector.table_name(User) == (None, "app_users")

    def test_schema_in_prefix(self):
        inspector = TableInspector(DatabaseConfig(table_prefix="tenant."), FieldsConfig())
        assert inspector.table_name(User) == ("tenant", "users")

    def test_bind_key_selects_url(self):
        database = DatabaseConfig(url="sqlite://", binds={"billing": "sqlite:///billing.db"})
        inspector = TableInspector(database, FieldsConfig())

        class Fake:
            __bind_key__ = "billing"

        assert inspector.database_url(Fake) == "sqlite:///billing.db"
        assert inspector.database_url(User) == "sqlite://"


class TestDatabaseColumns:
    """Test columns reflected from a live database."""

    @pytest.fixture
    def database_url(self, tmp_path: Path) -> str:
        url = f"sqlite:///{tmp_path / 'app.db'}"
        engine = create_engine(url)
        Base.metadata.create_all(engine)
        engine.dispose()
        return url

    def test_reflects_columns(self, database_url):
        inspector = TableInspector(DatabaseConfig(url=database_url), FieldsConfig())
        try:
            columns = {column.name: column for column in inspector.columns(User)}
        finally:
            inspector.dispose()

        assert columns["id"].primary_key and columns["id"].autoincrement
        assert columns["bio"].type_name == "text"
        assert columns["is_active"].type_name == "boolean"
        # Enum values come from the model when the database has no native enum
        assert columns["role"].enum_values == ["admin", "member"]

    def test_reflected_columns_carry_attribute_keys(self, database_url):
        inspector = TableInspector(DatabaseConfig(url=database_url), FieldsConfig())
        try:
            columns = {column.name: column for column in inspector.columns(Tag)}
        finally:
            inspector.dispose()

        assert columns["type"].key == "kind"
        assert columns["class"].key == "class_"
        assert columns["metadata"].type_name == "json"
        assert columns["metadata"].key == "metadata_"

    def test_missing_table_has_no_columns(self, tmp_path: Path):
        url = f"sqlite:///{tmp_path / 'empty.db'}"
        inspector = TableInspector(DatabaseConfig(url=url), FieldsConfig())
        try:
            assert inspector.columns(User) == []
        finally:
            inspector.dispose()

    def test_custom_types_are_per_dialect(self, database_url):
        database = DatabaseConfig(
            url=database_url,
            custom_types={"sqlite": {"text": "string"}, "postgresql": {"varchar": "text"}},
        )
        inspector = TableInspector(database, FieldsConfig())
        try:
            columns = {column.name: column for column in inspector.columns(User)}
        finally:
            inspector.dispose()

        assert columns["bio"].type_name == "string"
        assert columns["email"].type_name == "string"

    def test_unsupported_driver(self):
        inspector = TableInspector(DatabaseConfig(url="nosuchdb://localhost/app"), FieldsConfig())

        with pytest.raises(DriverError) as exc_info:
            inspector.columns(User)

        assert not exc_info.value.supported
        assert exc_info.value.user_message() == "Database driver (nosuchdb) for User model is not supported."

    def test_misconfigured_supported_driver(self, tmp_path: Path):
        url = f"sqlite:///{tmp_path / 'missing' / 'dir' / 'app.db'}"
        inspector = TableInspector(DatabaseConfig(url=url), FieldsConfig())

        with pytest.raises(DriverError) as exc_info:
            inspector.columns(User)

        assert exc_info.value.supported
        assert exc_info.value.user_message() == (
            "Database driver (sqlite) for User model is not configured properly!"
        )


class TestRelations:
    """Test many-to-one relation detection."""

    def test_post_relations(self, inspector):
        relations = {relation.key: relation for relation in inspector.relations(Post)}

        assert set(relations) == {"author", "parent"}
        assert relations["author"].related is User
        assert relations["author"].local_keys == ["author_id"]
        assert relations["parent"].related is Post
        assert relations["parent"].local_keys == ["parent_id"]

    def test_local_keys_are_attribute_names(self, inspector):
        (relation,) = inspector.relations(Tag)

        assert relation.key == "owner"
        assert relation.related is User
        assert relation.local_keys == ["owner_id"]

    def test_one_to_many_ignored(self, inspector):
        assert inspector.relations(User) == []
