"""
Configuration: environment settings, region presets and stock categories.
"""

from .config import Settings, settings
from .regions import REGIONS, get_region, list_regions
from .categories import default_categories

__all__ = ['Settings', 'settings', 'REGIONS', 'get_region', 'list_regions',
           'default_categories']
