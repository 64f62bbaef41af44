"""
Centralized settings and path configuration for the quote tool.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    # Walk up from this file to find the project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Bundled sample schemas
    samples_dir: Path

    # Engine behaviour
    default_currency: str = 'USD'
    max_derived_iterations: int = 10

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()

        samples_dir = Path(__file__).resolve().parent.parent / 'data' / 'samples'
        if os.environ.get('QUOTE_TOOL_SAMPLES_DIR'):
            samples_dir = Path(os.environ['QUOTE_TOOL_SAMPLES_DIR'])

        try:
            max_iterations = int(os.environ.get('QUOTE_TOOL_MAX_ITERATIONS', 10))
        except ValueError:
            max_iterations = 10

        return cls(
            project_root=root,
            samples_dir=samples_dir,
            default_currency=os.environ.get('QUOTE_TOOL_CURRENCY', 'USD').upper(),
            max_derived_iterations=max(1, max_iterations),
            log_level=os.environ.get('QUOTE_TOOL_LOG_LEVEL', 'INFO').upper(),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
