"""rulegraph - Dependency-ordered rule evaluation for structured documents."""

__version__ = "0.1.0"

from .cli import app  # noqa: E402
from .config import EngineConfig  # noqa: E402

__all__ = ["app", "EngineConfig", "__version__"]
