"""
Configuration management using Pydantic Settings.

Architecture Decision: Why pydantic-settings?
- Type-safe configuration with validation
- Supports multiple sources (YAML, env vars, defaults)
- Easy to test with different configurations
"""

import os
from pathlib import Path
from typing import Optional
import yaml

from pydantic_settings import BaseSettings, SettingsConfigDict
from timegrid.domain.models import UserPreferences


class Settings(BaseSettings):
    """
    Application settings with multiple sources:
    1. Default values (hardcoded)
    2. YAML config file (user preferences)
    3. Environment variables (highest priority)
    """
    model_config = SettingsConfigDict(
        env_prefix='TIMEGRID_',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    # Application paths
    app_name: str = "TimeGrid"
    config_dir: Optional[Path] = None
    data_dir: Optional[Path] = None

    # Local cache database
    database_url: Optional[str] = None

    # Remote table API
    api_url: str = "http://localhost:3001"
    api_token: Optional[str] = None
    user_id: Optional[str] = None
    request_timeout_seconds: float = 10.0

    log_level: str = "INFO"

    # User preferences
    preferences: UserPreferences = UserPreferences()

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._init_paths()
        self._load_yaml_config()

    @staticmethod
    def _platform_base(unix_parts: tuple) -> Path:
        if os.name == 'nt':  # Windows
            return Path(os.getenv('APPDATA'))
        return Path.home().joinpath(*unix_parts)

    def _init_paths(self):
        """Initialize default config/data paths based on OS"""
        folder = self.app_name.lower()
        if self.config_dir is None:
            self.config_dir = self._platform_base(('.config',)) / folder
        if self.data_dir is None:
            self.data_dir = self._platform_base(('.local', 'share')) / folder

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _load_yaml_config(self):
        """Load preferences from YAML file"""
        # First check in workspace config folder
        config_file = Path("config/settings.yaml")
        if not config_file.exists():
            config_file = self.config_dir / "settings.yaml"

        if config_file.exists():
            with open(config_file, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
                if config_data:
                    self.preferences = UserPreferences(**config_data)

    def save_preferences(self):
        """Save current preferences to YAML file"""
        config_file = self.config_dir / "settings.yaml"
        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(self.preferences.model_dump(), f, default_flow_style=False)

    def get_db_url(self) -> str:
        """Get database URL, creating default if not set"""
        if self.database_url:
            return self.database_url

        db_path = self.data_dir / 'timegrid_cache.db'
        return f"sqlite+aiosqlite:///{db_path}"

    @property
    def offline_dir(self) -> Path:
        return self.data_dir / 'offline_data'


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from file"""
    global _settings
    _settings = Settings()
    return _settings
