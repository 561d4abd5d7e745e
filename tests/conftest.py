"""Global pytest configuration and fixtures.

This module provides shared fixtures and configuration for all tests.
"""

import io
import sys
from pathlib import Path

import pytest
from rich.console import Console

from factorygen.config import FactorygenConfig


# =============================================================================
# Path Setup
# =============================================================================

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SAMPLE_APP_ROOT = FIXTURES_DIR / "sample_app"
BROKEN_APP_ROOT = FIXTURES_DIR / "broken_app"

# The sample models are imported by module name from here
sys.path.insert(0, str(SAMPLE_APP_ROOT))


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (CLI end to end)"
    )


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def sample_root() -> Path:
    """Project root of the sample application (models in sampleapp/models)."""
    return SAMPLE_APP_ROOT


@pytest.fixture
def broken_root() -> Path:
    """Project root whose only model module fails to import."""
    return BROKEN_APP_ROOT


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Empty directory the factories are written to."""
    directory = tmp_path / "factories"
    directory.mkdir()
    return directory


@pytest.fixture
def config(output_dir: Path) -> FactorygenConfig:
    """Config pointed at the sample models, writing into output_dir."""
    return FactorygenConfig.from_dict(
        {
            "models": {"dir": "sampleapp/models"},
            "output": {"dir": str(output_dir), "package": "tests.factories"},
        }
    )


@pytest.fixture
def console() -> Console:
    """Console writing to a buffer; read it back with console.file.getvalue()."""
    return Console(file=io.StringIO(), width=200, color_system=None)
