"""Factory module generation.

For each model reference the generator computes the target file,
collects properties (column name -> factory declaration) from the table
and from many-to-one relations, renders the factory template, and writes
the result. Problems with one model are reported and the loop moves on.
"""

import keyword
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from jinja2 import Environment, PackageLoader
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from factorygen.config import FactorygenConfig
from factorygen.discovery import ModelDirectoryError, ModelLoader, dir_to_namespace, resolve_model
from factorygen.introspection import (
    ColumnInfo,
    DriverError,
    TableInspector,
    fakeable_columns,
    is_instantiable_model_class,
)
from factorygen.logging_config import LogContext, get_logger
from factorygen.mapping import (
    map_by_name,
    map_by_type,
    map_enum,
    required_imports,
    sub_factory,
)

logger = get_logger(__name__)

FACTORY_TEMPLATE = "class_factory.py.j2"


def snake_case(name: str) -> str:
    """``OrderLineItem`` -> ``order_line_item``, ``HTTPLog`` -> ``http_log``"""
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return name.lower()


def split_reference(reference: str) -> tuple[str, str]:
    """``"pkg.mod:Class"`` or ``"pkg.mod.Class"`` -> ``("pkg.mod", "Class")``"""
    if ":" in reference:
        module, _, name = reference.partition(":")
    else:
        module, _, name = reference.rpartition(".")
    return module, name


@dataclass
class GenerationResult:
    """What happened to each model in one run."""

    created: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class FactoryGenerator:
    """Generates factory_boy factory modules for SQLAlchemy models.

    Args:
        config: Loaded configuration (CLI overrides already applied)
        root: Project root (default: current directory)
        console: Rich console for user-facing messages
        force: Overwrite existing factory files
        dry_run: Print rendered factories instead of writing them
    """

    def __init__(
        self,
        config: FactorygenConfig,
        root: Optional[Path] = None,
        console: Optional[Console] = None,
        force: bool = False,
        dry_run: bool = False,
    ):
        self.config = config
        self.root = Path(root) if root else Path.cwd()
        self.console = console or Console()
        self.force = force
        self.recursive = config.output.recursive
        self.dry_run = dry_run
        self.namespace = config.models.namespace or dir_to_namespace(config.models.dir)
        self.inspector = TableInspector(config.database, config.fields)
        self.properties: dict[str, str] = {}
        self.result = GenerationResult()
        self.env = Environment(
            loader=PackageLoader("factorygen", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    # ------------------------------------------------------------------
    # Console reporting
    # ------------------------------------------------------------------

    def info(self, message: str) -> None:
        logger.info(message)
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        logger.error(message)
        self.console.print(f"[red]✗[/red] {escape(message)}")

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def output_dir(self) -> Path:
        output = Path(self.config.output.dir)
        return output if output.is_absolute() else self.root / output

    @property
    def factories_package(self) -> str:
        if self.config.output.package:
            return self.config.output.package
        try:
            relative = self.output_dir.resolve().relative_to(self.root.resolve())
        except ValueError:
            return self.output_dir.name
        return dir_to_namespace(str(relative))

    def file_structure_diff(self, reference: str) -> list[str]:
        """Sub-packages between the models namespace and the model's module."""
        module, _ = split_reference(reference)
        parts = module.split(".")
        namespace = self.namespace.split(".") if self.namespace else []

        if parts[: len(namespace)] == namespace:
            remaining = parts[len(namespace):]
        else:
            remaining = [part for part in parts if part not in namespace]

        return remaining[:-1]

    def factory_filename(self, reference: str) -> Path:
        _, class_name = split_reference(reference)
        filename = f"{snake_case(class_name)}_factory.py"
        if self.recursive:
            return self.output_dir.joinpath(*self.file_structure_diff(reference), filename)
        return self.output_dir / filename

    def factory_module(self, reference: str) -> str:
        """Dotted module path of the factory generated for a model."""
        _, class_name = split_reference(reference)
        parts = [self.factories_package]
        if self.recursive:
            parts.extend(self.file_structure_diff(reference))
        parts.append(f"{snake_case(class_name)}_factory")
        return ".".join(part for part in parts if part)

    def make_dir_recursively(self, reference: str, permission: int = 0o755) -> None:
        """Create the factory sub-package for a model, with __init__.py files."""
        try:
            cls = resolve_model(reference)
        except Exception as e:
            self.error(f"Could not analyze class {reference}.\nException: {e}")
            return

        if cls is None or not is_instantiable_model_class(cls):
            return

        directory = self.output_dir
        for part in self.file_structure_diff(reference):
            directory = directory / part
            if not directory.exists():
                directory.mkdir(mode=permission, parents=True)
                (directory / "__init__.py").touch()

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def handle(self, models: tuple[str, ...] | list[str] = ()) -> GenerationResult:
        """Generate factories for the named models (or the whole model directory)."""
        loader = ModelLoader(self.root, self.config.models.dir, self.namespace, on_error=self.error)
        try:
            references = loader.load_models(models)
        except ModelDirectoryError as e:
            self.error(str(e))
            return self.result
        logger.debug(f"Generating factories for {len(references)} model reference(s)")

        try:
            for reference in references:
                with LogContext(model=reference):
                    self._generate_one(reference)
        finally:
            self.inspector.dispose()

        return self.result

    def _generate_one(self, reference: str) -> None:
        filename = self.factory_filename(reference)

        if self.recursive and not self.dry_run:
            self.make_dir_recursively(reference)

        if not self.force and not self.dry_run and filename.exists():
            self.warn(f"Model factory exists, use --force to overwrite: {self._display(filename)}")
            self.result.skipped.append(filename)
            return

        content = self.generate_factory(reference)
        if not content:
            return

        if self.dry_run:
            self.console.rule(escape(self._display(filename)))
            self.console.print(Syntax(content, "python"))
            self.result.created.append(filename)
            return

        try:
            filename.parent.mkdir(parents=True, exist_ok=True)
            filename.write_text(content)
        except OSError as e:
            logger.debug(f"Write failed: {e}", exc_info=True)
            self.error(f"Failed to save model factory: {self._display(filename)}")
            self.result.failed.append(reference)
        else:
            self.info(f"Model factory created: {self._display(filename)}")
            self.result.created.append(filename)

    def _display(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.root))
        except ValueError:
            return str(path)

    def generate_factory(self, reference: str) -> Optional[str]:
        """Render the factory module source for one model, or None to skip it."""
        self.properties = {}

        try:
            model = resolve_model(reference)
            if model is None:
                self.error(f"Unable to find {reference} class!")
                self.result.failed.append(reference)
                return None

            if not is_instantiable_model_class(model):
                logger.debug(f"Skipping {reference}: not a mapped model class")
                return None

            self.get_properties_from_table(model)
            self.get_properties_from_relations(model)

            return self.create_factory(model)
        except Exception as e:
            logger.debug(f"Analysis of {reference} failed", exc_info=True)
            self.error(f"Could not analyze class {reference}.\nException: {e}")
            self.result.failed.append(reference)

        return None

    # ------------------------------------------------------------------
    # Property collection
    # ------------------------------------------------------------------

    def get_properties_from_table(self, model: type) -> None:
        try:
            columns = self.inspector.columns(model)
        except DriverError as e:
            if e.supported:
                self.error(e.user_message())
            else:
                self.warn(e.user_message())
            return

        for column in fakeable_columns(self.inspector, model, columns):
            self.set_property(column)

    def get_properties_from_relations(self, model: type) -> None:
        for relation in self.inspector.relations(model):
            for key in relation.local_keys:
                self.properties.pop(key, None)

            if relation.related is model:
                # A self-referencing SubFactory would recurse forever
                self.properties[relation.key] = "None"
                continue

            related_reference = f"{relation.related.__module__}:{relation.related.__name__}"
            factory_path = f"{self.factory_module(related_reference)}.{relation.related.__name__}Factory"
            self.properties[relation.key] = sub_factory(factory_path)

    def set_property(self, column: ColumnInfo) -> None:
        """Map one column, keyed by the attribute the model constructor accepts."""
        field_name = column.key

        if not field_name.isidentifier() or keyword.iskeyword(field_name):
            logger.warning(f"Skipping column {field_name!r}: not a valid attribute name")
            return

        if column.enum_values:
            self.properties[field_name] = map_enum(column.enum_values)
            return

        names = self.config.fields.names
        if prop := map_by_name(field_name, names) or map_by_name(column.name, names):
            self.properties[field_name] = prop
            return

        if prop := map_by_type(column.type_name):
            self.properties[field_name] = prop
            return

        self.properties[field_name] = map_by_type("string")

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def base_class(self) -> tuple[Optional[str], str]:
        """Return ``(import line, name used in the class statement)``."""
        module, name = split_reference(self.config.output.base_class)
        if module == "factory":
            return None, f"factory.{name}"
        return f"from {module} import {name}", name

    def create_factory(self, model: type) -> str:
        base_import, base_name = self.base_class()
        template = self.env.get_template(FACTORY_TEMPLATE)
        return template.render(
            properties=self.properties,
            imports=required_imports(self.properties.values()),
            base_import=base_import,
            base_name=base_name,
            model_module=model.__module__,
            short_name=model.__name__,
            factory_name=f"{model.__name__}Factory",
        )
