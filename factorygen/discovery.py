"""Model discovery.

Turns the command's model arguments (or the models directory) into model
references of the form ``"package.module:ClassName"``, and resolves those
references back into classes.
"""

import importlib
import sys
from pathlib import Path
from typing import Callable, Iterator, Optional

from factorygen.logging_config import get_logger

logger = get_logger(__name__)

Reporter = Callable[[str], None]


class ModelDirectoryError(Exception):
    """Raised when the configured model directory does not exist."""


def path_to_module(path: Path, root: Path) -> str:
    """Convert a ``.py`` file below ``root`` into a dotted module name."""
    relative = path.resolve().relative_to(root.resolve()).with_suffix("")
    parts = list(relative.parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)


def dir_to_namespace(directory: str) -> str:
    """``app/models`` -> ``app.models``"""
    parts = [part for part in Path(directory).parts if part not in (".", "/", "\\")]
    return ".".join(parts)


def ensure_importable(root: Path) -> None:
    """Put the project root on sys.path so model packages import."""
    root_str = str(root.resolve())
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


def resolve_model(reference: str) -> Optional[type]:
    """Import a model reference, returning None if it cannot be found.

    Accepts ``"pkg.module:Class"`` and ``"pkg.module.Class"``.
    """
    if ":" in reference:
        module_name, _, attr = reference.partition(":")
    elif "." in reference:
        module_name, _, attr = reference.rpartition(".")
    else:
        return None

    try:
        module = importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        # Only "not found" when the missing module is the one we asked for
        if e.name and (module_name == e.name or module_name.startswith(e.name + ".")):
            logger.debug(f"Module {module_name} not found for {reference}")
            return None
        raise

    cls = getattr(module, attr, None)
    return cls if isinstance(cls, type) else None


class ModelLoader:
    """Finds model classes under a models directory.

    Args:
        root: Project root; module names are computed relative to it
        models_dir: Model directory, relative to the root
        namespace: Dotted package of the models root (derived from models_dir when None)
        on_error: Callback receiving user-facing error messages
    """

    def __init__(
        self,
        root: Path,
        models_dir: str,
        namespace: Optional[str] = None,
        on_error: Optional[Reporter] = None,
    ):
        self.root = Path(root)
        self.models_dir = models_dir
        self.namespace = namespace or dir_to_namespace(models_dir)
        self.on_error = on_error or logger.error
        self._scanned: Optional[list[str]] = None

    @property
    def directory(self) -> Path:
        return self.root / self.models_dir

    def load_models(self, names: tuple[str, ...] | list[str] = ()) -> list[str]:
        """Return model references for the given names, or for the whole directory.

        Raises:
            ModelDirectoryError: If no names were given and the directory is missing
        """
        ensure_importable(self.root)
        self._scanned = None

        if names:
            references = [self._qualify(name) for name in names]
        else:
            if not self.directory.is_dir():
                raise ModelDirectoryError("Model directory does not exist.")
            references = self._directory_references()

        return list(dict.fromkeys(references))

    def _directory_references(self) -> list[str]:
        """References for the whole model directory, scanned once per load."""
        if self._scanned is None:
            self._scanned = list(self._scan(self.directory)) if self.directory.is_dir() else []
        return self._scanned

    def _qualify(self, name: str) -> str:
        """Turn a command-line model identifier into a model reference."""
        if ":" in name or "." in name:
            return name

        *subdirs, class_name = name.replace("\\", "/").split("/")
        references = self._directory_references()
        if references:
            package = ".".join([path_to_module(self.directory, self.root), *subdirs])
            for reference in references:
                module, _, found = reference.partition(":")
                if found == class_name and (module == package or module.startswith(package + ".")):
                    return reference

        return ".".join([self.namespace, *subdirs, class_name])

    def _scan(self, directory: Path) -> Iterator[str]:
        """Yield a reference for every class defined in modules below directory."""
        for path in sorted(directory.rglob("*.py")):
            if "__pycache__" in path.parts:
                continue

            module_name = path_to_module(path, self.root)
            try:
                module = importlib.import_module(module_name)
            except Exception as e:
                self.on_error(f"Could not import module {module_name}.\nException: {e}")
                continue

            for attr, value in vars(module).items():
                if isinstance(value, type) and value.__module__ == module.__name__ and not attr.startswith("_"):
                    yield f"{module_name}:{value.__name__}"
