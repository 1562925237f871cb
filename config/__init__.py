"""
Config package for Training Compliance Toolkit

Contains YAML configuration files:
- settings.yaml: Database location and compliance policy knobs
- programs.yaml: Training program definitions loaded by --load-programs
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

# Path to config directory
CONFIG_DIR = Path(__file__).parent

# Built-in defaults; settings.yaml overrides any of these
DEFAULT_SETTINGS = {
    'database_path': '~/projects/data/training_compliance.db',
    'warn_window_days': 30,
    'expiring_horizon_days': 30,
    'include_expired_in_worklist': False,
    'regrade_on_amend': 'current',
    'recommended_programs_limit': 3,
}


def get_config_path(filename: str) -> str:
    """
    Get absolute path to a config file.

    Args:
        filename: Name of config file (e.g., 'settings.yaml')

    Returns:
        Absolute path to the config file
    """
    return str(CONFIG_DIR / filename)


def load_settings(path: str = None) -> Dict[str, Any]:
    """
    Load settings.yaml merged over DEFAULT_SETTINGS.

    PURPOSE: One place to read the policy knobs (warn window, worklist
             horizon, whether expired rows join the expiring worklist)

    PARAMETERS:
        path: Optional settings file. Defaults to config/settings.yaml.
              A missing file just means "use the defaults".

    RETURNS:
        Dict of settings. Unknown keys in the file are ignored.
    """
    settings = dict(DEFAULT_SETTINGS)
    settings_path = Path(os.path.expanduser(path or get_config_path('settings.yaml')))

    if not settings_path.exists():
        if path:
            raise FileNotFoundError(f"Settings file not found: {settings_path}")
        return settings

    with open(settings_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    for key, value in data.items():
        if key not in DEFAULT_SETTINGS:
            logger.warning("Ignoring unknown setting '%s' in %s", key, settings_path)
            continue
        settings[key] = value

    if settings['regrade_on_amend'] != 'current':
        raise ValueError(
            f"Unsupported regrade_on_amend policy: {settings['regrade_on_amend']}. "
            "Only 'current' is supported"
        )

    return settings
