"""
Store configuration for the local trip journal
Supports local development, testing, and installed (production) use
Environment-aware configuration based on APP_ENV
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Environment modes
EnvironmentMode = Literal["development", "test", "production"]

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def load_app_environment(mode: Optional[str] = None) -> str:
    """
    Load environment variables from the appropriate .env file.

    Priority:
    1. Explicit 'mode' argument
    2. APP_ENV environment variable
    3. Default to 'development'

    Loads .env.{mode} if it exists, falling back to .env
    """
    if not mode:
        mode = os.getenv('APP_ENV', 'development')

    env_file = PROJECT_ROOT / f'.env.{mode}'
    if not env_file.exists():
        env_file = PROJECT_ROOT / '.env'

    if env_file.exists():
        logger.info(f"Loading config from {env_file}")
        # Host environment wins over .env values
        load_dotenv(env_file, override=False)
    else:
        logger.debug(f"No config file found for mode '{mode}'")

    return mode


def get_environment_mode() -> EnvironmentMode:
    """Get current environment mode from APP_ENV variable"""
    mode = os.getenv('APP_ENV', 'development').lower()
    if mode not in ('development', 'test', 'production'):
        mode = 'development'
    return mode  # type: ignore


def is_test_mode() -> bool:
    """Check if running in test mode"""
    return get_environment_mode() == 'test'


def get_data_root(mode: Optional[str] = None) -> Path:
    r"""
    Get the root directory for trip data.

    Storage by Environment:
    - Development: ./data (local to project for convenience)
    - Test: ./data_test (isolated test data)
    - Production: Platform-specific user data directory
      * Windows: %LOCALAPPDATA%\Toki\data
      * Linux/Mac: ~/.local/share/toki/data
    """
    mode = mode or get_environment_mode()

    if mode == 'production':
        if os.name == 'nt':
            base = os.getenv('LOCALAPPDATA', os.path.expanduser('~\\AppData\\Local'))
            return Path(base) / 'Toki' / 'data'
        base = os.getenv('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))
        return Path(base) / 'toki' / 'data'
    elif mode == 'test':
        return PROJECT_ROOT / "data_test"
    else:
        return PROJECT_ROOT / "data"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class StoreConfig:
    """Trip store configuration"""

    data_dir: Path
    media_dir_name: str = "media"

    # None writes compact JSON
    json_indent: Optional[int] = 2

    # Pull width/height/EXIF out of saved images
    extract_exif: bool = True

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)

    @property
    def media_dir(self) -> Path:
        return self.data_dir / self.media_dir_name

    @classmethod
    def from_environment(cls, mode: Optional[EnvironmentMode] = None) -> 'StoreConfig':
        """
        Load configuration from environment variables

        Environment variables:
        - APP_ENV: Environment mode (development, test, production)
        - TOKI_DATA_DIR: Data directory (default: see get_data_root)
        - TOKI_JSON_INDENT: Indent for collection files, "none" for compact (default: 2)
        - TOKI_EXTRACT_EXIF: Extract image metadata on save (default: true)
        """
        mode = load_app_environment(mode)

        data_dir = os.getenv('TOKI_DATA_DIR')
        indent_str = os.getenv('TOKI_JSON_INDENT', '2').lower()

        config = cls(
            data_dir=Path(data_dir).expanduser() if data_dir else get_data_root(mode),
            json_indent=None if indent_str in ('', 'none') else int(indent_str),
            extract_exif=_env_flag('TOKI_EXTRACT_EXIF', 'true'),
        )

        config.validate_safety(mode)
        return config

    @classmethod
    def for_directory(cls, data_dir, **overrides) -> 'StoreConfig':
        """Configuration rooted at an explicit directory (tests, tooling)"""
        return cls(data_dir=Path(data_dir).expanduser(), **overrides)

    def validate_safety(self, mode: str):
        """Ensure configuration is safe for the requested mode"""
        if mode == 'test':
            production_root = get_data_root('production').resolve()
            if self.data_dir.resolve() == production_root:
                raise ValueError(
                    f"SAFETY ERROR: Test mode requested but data directory is the "
                    f"production store at '{self.data_dir}'."
                )


# Example .env file content
ENV_TEMPLATE = """
# Application Environment
# Options: development, test, production
APP_ENV=development

# Where trips.json, places.json, cards.json, media.json and media/ live
# TOKI_DATA_DIR=~/trips

# Collection file formatting ("none" writes compact JSON)
TOKI_JSON_INDENT=2

# Extract width/height/EXIF from saved images
TOKI_EXTRACT_EXIF=true
"""


def create_env_file(filepath: str = ".env"):
    """Create a template .env file"""
    with open(filepath, 'w') as f:
        f.write(ENV_TEMPLATE)
    logger.info(f"Created template .env file at {filepath}")
