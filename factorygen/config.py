"""Configuration management for factorygen.

Configuration Priority Chain (highest to lowest):
1. Command-line arguments (--dir, --output-dir, --database-url, etc.)
2. Environment variables (FACTORYGEN_MODELS_DIR, FACTORYGEN_DATABASE_URL, etc.)
3. Config file (.factorygenrc, factorygen.toml)
4. Built-in defaults

Config files are searched hierarchically:
1. Current directory
2. Parent directories (up to root)
3. User home directory (~/.factorygenrc or ~/.config/factorygen.toml)

Environment Variable Names:
- FACTORYGEN_MODELS_DIR
- FACTORYGEN_NAMESPACE
- FACTORYGEN_OUTPUT_DIR
- FACTORYGEN_DATABASE_URL
- FACTORYGEN_TABLE_PREFIX
- FACTORYGEN_LOG_LEVEL (or LOG_LEVEL)
- FACTORYGEN_LOG_FORMAT (or LOG_FORMAT)
- FACTORYGEN_LOG_FILE (or LOG_FILE)

Example .factorygenrc (YAML):
```yaml
models:
  dir: app/models

output:
  dir: tests/factories
  base_class: "tests.factories.base:AsyncSQLAlchemyFactory"

database:
  url: ${DATABASE_URL}
  table_prefix: ""
  custom_types:
    postgresql:
      citext: string
      inet: string

fields:
  exclude:
    - search_vector
  names:
    nickname: first_name

logging:
  level: INFO
  format: human
```

Example factorygen.toml:
```toml
[models]
dir = "app/models"

[output]
dir = "tests/factories"

[database]
url = "${DATABASE_URL}"

[logging]
level = "INFO"
format = "human"
```
"""

import json
import os
import re
import tomllib
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from factorygen.logging_config import get_logger

logger = get_logger(__name__)

CONFIG_FILE_NAMES = (".factorygenrc", "factorygen.toml")


class LogLevel(str, Enum):
    """Valid log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


@dataclass
class ModelsConfig:
    """Where models live."""
    dir: str = "app/models"
    namespace: Optional[str] = None  # Derived from dir when unset


@dataclass
class OutputConfig:
    """Where and how factories are written."""
    dir: str = "tests/factories"
    package: Optional[str] = None  # Derived from dir when unset
    base_class: str = "factory.alchemy:SQLAlchemyModelFactory"
    recursive: bool = False


@dataclass
class DatabaseConfig:
    """Optional live database used for column reflection."""
    url: Optional[str] = None
    binds: Dict[str, str] = field(default_factory=dict)  # __bind_key__ -> url
    table_prefix: str = ""
    custom_types: Dict[str, Dict[str, str]] = field(default_factory=dict)  # dialect -> {db type: generic type}


@dataclass
class FieldsConfig:
    """Column naming conventions."""
    created_at: str = "created_at"
    updated_at: str = "updated_at"
    deleted_at: str = "deleted_at"
    exclude: List[str] = field(default_factory=list)
    names: Dict[str, str] = field(default_factory=dict)  # column name -> Faker provider


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "human"  # "human" or "json"
    file: Optional[str] = None


@dataclass
class FactorygenConfig:
    """Complete factorygen configuration."""
    models: ModelsConfig = field(default_factory=ModelsConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    fields: FieldsConfig = field(default_factory=FieldsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FactorygenConfig":
        """Create config from dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            FactorygenConfig instance

        Raises:
            ConfigError: If a section contains unknown keys
        """
        data = _expand_env_vars(data or {})

        try:
            return cls(
                models=ModelsConfig(**data.get("models", {})),
                output=OutputConfig(**data.get("output", {})),
                database=DatabaseConfig(**data.get("database", {})),
                fields=FieldsConfig(**data.get("fields", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)


def _expand_env_vars(data: Union[Dict, list, str, Any]) -> Any:
    """Recursively expand environment variables in config data.

    Supports ${VAR_NAME} and $VAR_NAME syntax. Unknown variables are left as-is.
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = re.compile(r'\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)')

        def replace_var(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        return pattern.sub(replace_var, data)
    else:
        return data


def find_config_file(start_dir: Optional[Path] = None) -> Optional[Path]:
    """Find config file using hierarchical search.

    Searches start_dir (default: current directory), then its parents,
    then the user's home directory (``~/.factorygenrc`` and
    ``~/.config/factorygen.toml``).

    Returns:
        Path to config file, or None if not found
    """
    if start_dir is None:
        start_dir = Path.cwd()
    else:
        start_dir = Path(start_dir).resolve()

    current = start_dir
    while True:
        for name in CONFIG_FILE_NAMES:
            candidate = current / name
            if candidate.is_file():
                logger.info(f"Found config file: {candidate}")
                return candidate

        parent = current.parent
        if parent == current:
            break
        current = parent

    home = Path.home()
    for candidate in (home / ".factorygenrc", home / ".config" / "factorygen.toml"):
        if candidate.is_file():
            logger.info(f"Found config file: {candidate}")
            return candidate

    logger.debug("No config file found")
    return None


def load_config_file(file_path: Path) -> Dict[str, Any]:
    """Load configuration from file.

    Supports:
    - .factorygenrc (YAML or JSON)
    - *.yaml / *.yml / *.json
    - *.toml

    Raises:
        ConfigError: If file cannot be parsed or format not supported
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise ConfigError(f"Config file not found: {file_path}")

    try:
        content = file_path.read_text()
    except OSError as e:
        raise ConfigError(f"Failed to read config file {file_path}: {e}")

    if file_path.suffix == ".toml":
        try:
            data = tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Failed to parse TOML config {file_path}: {e}")
        logger.debug(f"Loaded TOML config from {file_path}")
        return data

    if file_path.name == ".factorygenrc" or file_path.suffix in (".yaml", ".yml", ".json"):
        # JSON is a subset of YAML, so one parser covers both
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {file_path} as YAML or JSON: {e}")
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {file_path} must contain a mapping")
        logger.debug(f"Loaded YAML config from {file_path}")
        return data

    raise ConfigError(f"Unsupported config file format: {file_path}")


def load_config_from_env() -> Dict[str, Any]:
    """Load configuration from FACTORYGEN_* environment variables."""
    config: Dict[str, Any] = {}

    models = {}
    if models_dir := os.getenv("FACTORYGEN_MODELS_DIR"):
        models["dir"] = models_dir
    if namespace := os.getenv("FACTORYGEN_NAMESPACE"):
        models["namespace"] = namespace
    if models:
        config["models"] = models

    output = {}
    if output_dir := os.getenv("FACTORYGEN_OUTPUT_DIR"):
        output["dir"] = output_dir
    if recursive := os.getenv("FACTORYGEN_RECURSIVE"):
        output["recursive"] = recursive.lower() in ("true", "1", "yes")
    if output:
        config["output"] = output

    database = {}
    if url := os.getenv("FACTORYGEN_DATABASE_URL"):
        database["url"] = url
    if prefix := os.getenv("FACTORYGEN_TABLE_PREFIX"):
        database["table_prefix"] = prefix
    if database:
        config["database"] = database

    logging_cfg = {}
    if level := os.getenv("FACTORYGEN_LOG_LEVEL") or os.getenv("LOG_LEVEL"):
        logging_cfg["level"] = level.upper()
    if fmt := os.getenv("FACTORYGEN_LOG_FORMAT") or os.getenv("LOG_FORMAT"):
        logging_cfg["format"] = fmt
    if file := os.getenv("FACTORYGEN_LOG_FILE") or os.getenv("LOG_FILE"):
        logging_cfg["file"] = file
    if logging_cfg:
        config["logging"] = logging_cfg

    return config


def _deep_merge_dicts(base: Dict, override: Dict) -> Dict:
    """Deep merge two dictionaries (base is not modified)."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge_dicts(result[key], value)
        else:
            result[key] = value

    return result


def load_config(
    config_file: Optional[Union[str, Path]] = None,
    search_path: Optional[Path] = None,
    use_env: bool = True,
) -> FactorygenConfig:
    """Load factorygen configuration with fallback chain.

    Args:
        config_file: Explicit path to config file (optional)
        search_path: Starting directory for hierarchical search (default: current dir)
        use_env: Whether to load from environment variables (default: True)

    Returns:
        FactorygenConfig instance with merged configuration

    Raises:
        ConfigError: If the config file cannot be loaded
    """
    merged_data: Dict[str, Any] = {}

    config_path = Path(config_file) if config_file else find_config_file(search_path)
    if config_path:
        file_data = load_config_file(config_path)
        logger.info(f"Loaded configuration from {config_path}")
        merged_data = _deep_merge_dicts(merged_data, file_data)

    if use_env:
        env_data = load_config_from_env()
        if env_data:
            logger.debug("Loaded configuration from environment variables")
            merged_data = _deep_merge_dicts(merged_data, env_data)

    return FactorygenConfig.from_dict(merged_data)


def validate_config(config: FactorygenConfig) -> List[str]:
    """Validate configuration and return warnings."""
    from factorygen.mapping import is_known_provider

    warnings = []

    if config.logging.level.upper() not in LogLevel.__members__:
        warnings.append(
            f"Unknown log level '{config.logging.level}', falling back to INFO"
        )

    if config.logging.format not in ("human", "json"):
        warnings.append(
            f"Unknown log format '{config.logging.format}', expected 'human' or 'json'"
        )

    if ":" not in config.output.base_class:
        warnings.append(
            f"output.base_class '{config.output.base_class}' should look like 'package.module:ClassName'"
        )

    for column, provider in config.fields.names.items():
        if not is_known_provider(provider):
            warnings.append(f"fields.names.{column}: unknown Faker provider '{provider}'")

    for dialect, types in config.database.custom_types.items():
        if not isinstance(types, dict):
            warnings.append(f"database.custom_types.{dialect} should be a mapping")

    return warnings


def generate_config_template(format: str = "yaml") -> str:
    """Generate configuration file template.

    Args:
        format: Template format ("yaml", "json", or "toml")

    Raises:
        ValueError: If format is not supported
    """
    data = FactorygenConfig().to_dict()

    if format == "yaml":
        template = yaml.dump(data, default_flow_style=False, sort_keys=False)
        return f"""# factorygen configuration file (.factorygenrc)
#
# This file can be placed in your project root, in your home directory
# (~/.factorygenrc) or in ~/.config/factorygen.toml.
#
# Environment variables can be referenced using ${{VAR_NAME}} syntax.

{template}"""

    elif format == "json":
        return json.dumps(data, indent=2)

    elif format == "toml":
        lines = [
            "# factorygen configuration file (factorygen.toml)",
            "#",
            "# Environment variables can be referenced using ${VAR_NAME} syntax.",
            "",
            "[models]",
            f'dir = "{data["models"]["dir"]}"',
            "",
            "[output]",
            f'dir = "{data["output"]["dir"]}"',
            f'base_class = "{data["output"]["base_class"]}"',
            f'recursive = {str(data["output"]["recursive"]).lower()}',
            "",
            "[database]",
            f'table_prefix = "{data["database"]["table_prefix"]}"',
            "",
            "[fields]",
            f'created_at = "{data["fields"]["created_at"]}"',
            f'updated_at = "{data["fields"]["updated_at"]}"',
            f'deleted_at = "{data["fields"]["deleted_at"]}"',
            f'exclude = {json.dumps(data["fields"]["exclude"])}',
            "",
            "[logging]",
            f'level = "{data["logging"]["level"]}"',
            f'format = "{data["logging"]["format"]}"',
        ]
        return "\n".join(lines) + "\n"

    else:
        raise ValueError(f"Unsupported format: {format}. Use 'yaml', 'json', or 'toml'")
