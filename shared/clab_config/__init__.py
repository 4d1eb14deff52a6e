"""
Configuration framework for clab.

Usage:
    from clab_config import BaseConfig, ValidationResult
    from clab_config.validators import validate_url, mask_secret
    from clab_config.utils import load_yaml_file, safe_int
"""

from .base import BaseConfig, ConfigStatus, HealthCheckResult, ValidationResult


__all__ = [
    "BaseConfig",
    "ConfigStatus",
    "HealthCheckResult",
    "ValidationResult",
]
