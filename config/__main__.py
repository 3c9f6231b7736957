"""Command line interface for checking which settings will be used"""
import sys

from . import load_settings_conf, SettingsError, ENV_VARS


def main():
    """Display loaded configuration"""
    try:
        settings = load_settings_conf()
    except SettingsError as e:
        print(f"\n{e}")
        return 1

    print("\nDatabase Settings:")
    print("-" * 50)
    for key, value in settings.items():
        if key == 'db_password' and value:
            value = '********'
        print(f"{key} ({ENV_VARS[key]}): {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
