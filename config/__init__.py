"""Configuration module for loading database connection settings"""
from .lib.load_settings_conf import (
    DEFAULTS,
    ENV_VARS,
    SettingsError,
    load_settings_conf,
    validate_settings,
)

__all__ = ['load_settings_conf', 'validate_settings', 'SettingsError', 'DEFAULTS', 'ENV_VARS']
