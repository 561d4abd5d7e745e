"""factorygen - generate factory_boy test factories from SQLAlchemy models."""

__version__ = "0.1.0"

from factorygen.generator import FactoryGenerator, GenerationResult  # noqa: E402

__all__ = [
    "__version__",
    "FactoryGenerator",
    "GenerationResult",
]
