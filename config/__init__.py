"""Configuration module for loading and managing application settings"""
from typing import Dict, Any, Optional
import os

from .lib.load_settings_conf import load_settings_conf, SettingsError, DEFAULTS
from .lib.pricing_settings import PricingSettings, TierBandSetting

__all__ = [
    'settings_conf', 'pricing_settings', 'load_config', 'SettingsError',
    'PricingSettings', 'TierBandSetting', 'DEFAULTS'
]

# Directory holding settings.conf
SETTINGS_DIR = os.environ.get('LIFECYCLE_SETTINGS', '.')

def load_config(config_path: Optional[str] = None) -> PricingSettings:
    """Load configuration from file.

    Args:
        config_path: Optional directory containing settings.conf. If not provided,
                    will use LIFECYCLE_SETTINGS or the current directory.

    Returns:
        Typed pricing settings
    """
    return PricingSettings.from_conf(load_settings_conf(config_path or SETTINGS_DIR))

try:
    settings_conf: Dict[str, Any] = load_settings_conf(SETTINGS_DIR)
    pricing_settings: PricingSettings = PricingSettings.from_conf(settings_conf)

except SettingsError as e:
    # Re-raise the error but provide more context
    raise SettingsError(
        f"Configuration Error\n"
        "=================\n\n"
        f"{str(e)}\n\n"
        "Please ensure settings.conf is properly configured.\n"
        "See settings.conf.example for the available settings."
    )
