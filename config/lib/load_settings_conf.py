"""Settings configuration loader module.

This module loads the database connection settings used by the setup
procedure. Values are resolved in this order, later sources winning:

    1. Built-in defaults
    2. settings.conf (INI format, [DEFAULT] section), if present
    3. .env file in the same directory, if present
    4. Process environment (DB_HOST, DB_PORT, ...)

Example settings.conf:
    [DEFAULT]
    db_host = localhost
    db_port = 5432
    db_user = postgres
    db_password = secret

Example .env:
    DB_HOST=localhost
    DB_PASSWORD=secret

Raises:
    SettingsError: If the settings file cannot be parsed or a setting is invalid
"""
from configparser import ConfigParser, Error as ConfigParserError
from pathlib import Path
from typing import Dict, Any, List, Mapping, Optional
import os

from dotenv import load_dotenv


class ConfigValidationError:
    """Helper class to format configuration validation errors"""
    def __init__(self):
        self.missing: List[str] = []
        self.invalid: List[str] = []

    def has_errors(self) -> bool:
        """Check if any errors exist"""
        return bool(self.missing or self.invalid)

    def format_message(self) -> str:
        """Format error message in a clean, readable way"""
        messages = []

        if self.missing:
            messages.append("Missing required settings:")
            messages.extend(f"  - {item}" for item in self.missing)

        if self.invalid:
            if messages:
                messages.append("")
            messages.append("Invalid settings:")
            messages.extend(f"  - {item}" for item in self.invalid)

        return "\n".join(messages)


class SettingsError(Exception):
    """Raised when there are issues loading or parsing the settings configuration."""
    pass


# Default settings
DEFAULTS = {
    'db_host': 'localhost',
    'db_port': '5432',
    'db_user': 'postgres',
    'db_password': '',
    'admin_database': 'postgres',  # Always exists on a PostgreSQL server
    'db_ssl': 'false',
    'connect_attempts': '1',  # No retries unless asked for
    'connect_timeout': '60',
    'command_timeout': '60'
}

# Environment variable for each setting
ENV_VARS = {
    'db_host': 'DB_HOST',
    'db_port': 'DB_PORT',
    'db_user': 'DB_USER',
    'db_password': 'DB_PASSWORD',
    'admin_database': 'DB_ADMIN_DATABASE',
    'db_ssl': 'DB_SSL',
    'connect_attempts': 'DB_CONNECT_ATTEMPTS',
    'connect_timeout': 'DB_CONNECT_TIMEOUT',
    'command_timeout': 'DB_COMMAND_TIMEOUT'
}

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off', ''}


def load_settings_conf(settings_path: str = ".",
                       environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Load, merge and validate database settings

    Args:
        settings_path: Directory containing settings.conf and .env
        environ: Environment mapping to read. Defaults to os.environ after
            loading the .env file into it.

    Returns:
        Dictionary containing validated settings

    Raises:
        SettingsError: If parsing or validation fails
    """
    settings = dict(DEFAULTS)

    config_path = Path(settings_path) / 'settings.conf'
    if config_path.exists():
        try:
            parser = ConfigParser()
            parser.read(config_path)
        except ConfigParserError as e:
            raise SettingsError(f"Error parsing settings.conf: {str(e)}")

        for key, value in parser['DEFAULT'].items():
            if key in DEFAULTS:
                settings[key] = value

    if environ is None:
        load_dotenv(Path(settings_path) / '.env', override=False)
        environ = os.environ

    for key, env_var in ENV_VARS.items():
        if env_var in environ:
            settings[key] = environ[env_var]

    return validate_settings(settings)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(value)


def validate_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Validate loaded settings.

    Args:
        settings: Dictionary of settings to validate

    Returns:
        Validated and processed settings

    Raises:
        SettingsError: If validation fails
    """
    errors = ConfigValidationError()
    settings = dict(settings)

    for key in ('db_host', 'db_user', 'admin_database'):
        if not str(settings.get(key) or '').strip():
            errors.missing.append(key)

    # Empty password means "let libpq decide" (.pgpass, trust auth)
    settings['db_password'] = settings.get('db_password') or None

    try:
        settings['db_port'] = int(settings['db_port'])
        if not 1 <= settings['db_port'] <= 65535:
            raise ValueError
    except (KeyError, TypeError, ValueError):
        errors.invalid.append(f"db_port: must be an integer between 1 and 65535, got {settings.get('db_port')!r}")

    try:
        settings['connect_attempts'] = int(settings['connect_attempts'])
        if settings['connect_attempts'] < 1:
            raise ValueError
    except (KeyError, TypeError, ValueError):
        errors.invalid.append(
            f"connect_attempts: must be at least 1, got {settings.get('connect_attempts')!r}"
        )

    for key in ('connect_timeout', 'command_timeout'):
        try:
            settings[key] = float(settings[key])
            if settings[key] <= 0:
                raise ValueError
        except (KeyError, TypeError, ValueError):
            errors.invalid.append(f"{key}: must be a positive number, got {settings.get(key)!r}")

    try:
        settings['db_ssl'] = _parse_bool(settings.get('db_ssl', False))
    except ValueError:
        errors.invalid.append(f"db_ssl: must be true or false, got {settings.get('db_ssl')!r}")

    if errors.has_errors():
        raise SettingsError(
            "Settings Configuration Validation Failed\n\n" +
            errors.format_message()
        )

    return settings
