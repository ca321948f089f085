"""
Config module - Defaults, network presets and the settings loader.
"""

from .settings import (
    DEFAULT_SETTINGS,
    GAS_BUDGET,
    NETWORKS,
    ConfigError,
    MigrationConfig,
    load_config,
)

__all__ = [
    'DEFAULT_SETTINGS',
    'GAS_BUDGET',
    'NETWORKS',
    'ConfigError',
    'MigrationConfig',
    'load_config',
]
