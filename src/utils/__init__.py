"""
Utility modules for the service portal
"""
from .config_loader import load_pricing_catalog, load_settings, mask_secret
from .rate_limiter import RateLimiter
from .validators import normalize_phone_number

__all__ = [
    'load_pricing_catalog',
    'load_settings',
    'mask_secret',
    'RateLimiter',
    'normalize_phone_number',
]
