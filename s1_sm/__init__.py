"""
Sentinel-1 speckle filtering and Sentinel-2 NDVI smoothing for soil moisture analysis.
"""

__version__ = "1.2.0"

from .config import FilterConfig, FilterKind, Framework
from .exceptions import ConfigError, GapError, InsufficientDataError, S1SMError
from .ndvi_interpolation import interpolate_and_smooth
from .raster import Raster, RasterSeries
from .speckle_filter import filter_speckle

__all__ = [
    'ConfigError',
    'FilterConfig',
    'FilterKind',
    'Framework',
    'GapError',
    'InsufficientDataError',
    'Raster',
    'RasterSeries',
    'S1SMError',
    'filter_speckle',
    'interpolate_and_smooth',
]
