#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Version: v1.0
Date: 2022-07-11
Description: Processing parameters. The processing chain is driven by an upper-case
             parameter dictionary; missing or None entries take the defaults below and
             every enumerated parameter is checked before any imagery is requested.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from .exceptions import ConfigError
from .statistics import Window

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULT_PARAMS = {
    # 1. Data selection
    'START_DATE': None,
    'STOP_DATE': None,
    'POLARIZATION': 'VVVH',
    'ORBIT': 'BOTH',
    'PLATFORM_NUMBER': None,
    'ORBIT_NUM': None,
    'GEOMETRY': None,
    'SCALE': 10,
    # 2. Additional border noise correction
    'APPLY_BORDER_NOISE_CORRECTION': True,
    # 3. Speckle filter
    'APPLY_SPECKLE_FILTERING': True,
    'SPECKLE_FILTER_FRAMEWORK': 'MULTI',
    'SPECKLE_FILTER': 'GAMMA MAP',
    'SPECKLE_FILTER_KERNEL_SIZE': 7,
    'SPECKLE_FILTER_NR_OF_IMAGES': 10,
    'ENL': 5,
    'MAX_WORKERS': 1,
    # 4. Output
    'FORMAT': 'DB',
    'SAVE_ASSETS': False,
    'EXPORT_DIR': None,
    # 5. NDVI interpolation and smoothing
    'NDVI_SCALE': 20,
    'CLOUD_THRESHOLD': 40,
    'NDVI_INTERVAL': 2,
    'NDVI_WINDOW_DAYS': 60,
    'SG_ORDER': 3,
    'PERCENTILES': (5, 95),
}


# ---------------------------------------------------------------------------//
# Filter configuration
# ---------------------------------------------------------------------------//

class FilterKind(Enum):
    BOXCAR = 'BOXCAR'
    LEE = 'LEE'
    GAMMA_MAP = 'GAMMA MAP'
    REFINED_LEE = 'REFINED LEE'
    LEE_SIGMA = 'LEE SIGMA'

    @classmethod
    def parse(cls, value):
        """Accept a FilterKind, its value ('GAMMA MAP') or its name ('GAMMA_MAP')."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper().replace('_', ' ')
        for kind in cls:
            if kind.value == key:
                return kind
        raise ConfigError("ERROR!!! SPECKLE_FILTER not correctly defined: {!r}".format(value))


class Framework(Enum):
    MONO = 'MONO'
    MULTI = 'MULTI'

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ConfigError("ERROR!!! SPECKLE_FILTER_FRAMEWORK not correctly defined: {!r}".format(value))


@dataclass(frozen=True)
class FilterConfig:
    """
    Immutable speckle filter settings.

    Parameters
    ----------
    kind : FilterKind or str
        Speckle filter applied to each image
    framework : Framework or str
        'MONO' filters each image on its own, 'MULTI' applies the Quegan
        multi-temporal filter around the mono-temporal one
    kernel_size : int
        Odd spatial window size, >= 3
    nr_of_images : int
        Number of neighbouring images used by the MULTI framework
    enl : float
        Equivalent number of looks of the data. Not used by LEE SIGMA, whose
        sigma range lookup table is fixed to 4-look intensity
    max_workers : int
        Threads used to filter images in parallel

    """
    kind: FilterKind = FilterKind.GAMMA_MAP
    framework: Framework = Framework.MULTI
    kernel_size: int = 7
    nr_of_images: int = 10
    enl: float = 5
    max_workers: int = field(default=1, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'kind', FilterKind.parse(self.kind))
        object.__setattr__(self, 'framework', Framework.parse(self.framework))
        self.validate()

    def validate(self):
        Window(self.kernel_size)
        if self.framework is Framework.MULTI:
            if isinstance(self.nr_of_images, bool) or not isinstance(self.nr_of_images, int) \
                    or self.nr_of_images < 1:
                raise ConfigError("ERROR!!! SPECKLE_FILTER_NR_OF_IMAGES not correctly defined: {!r}"
                                  .format(self.nr_of_images))
        if not self.enl or self.enl <= 0:
            raise ConfigError("ERROR!!! ENL not correctly defined: {!r}".format(self.enl))
        if self.max_workers is None or self.max_workers < 1:
            raise ConfigError("ERROR!!! MAX_WORKERS not correctly defined: {!r}".format(self.max_workers))

    @classmethod
    def from_params(cls, params):
        return cls(kind=params['SPECKLE_FILTER'],
                   framework=params['SPECKLE_FILTER_FRAMEWORK'],
                   kernel_size=params['SPECKLE_FILTER_KERNEL_SIZE'],
                   nr_of_images=params['SPECKLE_FILTER_NR_OF_IMAGES'],
                   enl=params['ENL'],
                   max_workers=params['MAX_WORKERS'])


# ---------------------------------------------------------------------------//
# Parameter checking
# ---------------------------------------------------------------------------//

def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_percentiles(percentiles):
    try:
        low, high = percentiles
    except (TypeError, ValueError):
        raise ConfigError("ERROR!!! Parameter PERCENTILES not correctly defined: {!r}".format(percentiles))
    if not 0 <= low < high <= 100:
        raise ConfigError("ERROR!!! Parameter PERCENTILES not correctly defined: {!r}".format(percentiles))
    return low, high


def check_params(params):
    """
    Fill in defaults and check a parameter dictionary.

    Parameters
    ----------
    params : dict
        Processing parameters, see DEFAULT_PARAMS for the keys

    Raises
    ------
    ConfigError
        If a parameter is not correctly defined

    Returns
    -------
    dict
        A new dictionary with every key of DEFAULT_PARAMS set

    """
    unknown = set(params) - set(DEFAULT_PARAMS)
    if unknown:
        raise ConfigError("ERROR!!! Unknown parameters: {}".format(sorted(unknown)))

    checked = dict(DEFAULT_PARAMS)
    checked.update({k: v for k, v in params.items() if v is not None})

    if checked['POLARIZATION'] not in ['VV', 'VH', 'VVVH']:
        raise ConfigError("ERROR!!! Parameter POLARIZATION not correctly defined")

    if checked['ORBIT'] not in ['ASCENDING', 'DESCENDING', 'BOTH']:
        raise ConfigError("ERROR!!! Parameter ORBIT not correctly defined")

    if checked['PLATFORM_NUMBER'] not in [None, 'A', 'B']:
        raise ConfigError("ERROR!!! Parameter PLATFORM_NUMBER not correctly defined")

    if checked['FORMAT'] not in ['LINEAR', 'DB']:
        raise ConfigError("ERROR!!! FORMAT not correctly defined")

    if checked['SCALE'] <= 0 or checked['NDVI_SCALE'] <= 0:
        raise ConfigError("ERROR!!! SCALE not correctly defined")

    if not 0 <= checked['CLOUD_THRESHOLD'] <= 100:
        raise ConfigError("ERROR!!! Parameter CLOUD_THRESHOLD not correctly defined")

    if not _is_int(checked['NDVI_INTERVAL']) or checked['NDVI_INTERVAL'] < 1:
        raise ConfigError("ERROR!!! Parameter NDVI_INTERVAL not correctly defined")

    if not _is_number(checked['NDVI_WINDOW_DAYS']) or checked['NDVI_WINDOW_DAYS'] <= 0:
        raise ConfigError("ERROR!!! Parameter NDVI_WINDOW_DAYS not correctly defined")

    if not _is_int(checked['SG_ORDER']) or checked['SG_ORDER'] < 0:
        raise ConfigError("ERROR!!! Parameter SG_ORDER not correctly defined")

    if checked['SAVE_ASSETS'] and not checked['EXPORT_DIR']:
        raise ConfigError("ERROR!!! EXPORT_DIR is required when SAVE_ASSETS is set")

    checked['PERCENTILES'] = check_percentiles(checked['PERCENTILES'])
    # raises ConfigError on bad filter settings
    FilterConfig.from_params(checked)
    return checked


# ---------------------------------------------------------------------------//
# Logging
# ---------------------------------------------------------------------------//

def setup_logging(level='INFO', fmt=LOG_FORMAT, filename=None):
    """Configure the root logger for command line runs."""
    handlers = [logging.StreamHandler()]
    if filename:
        handlers.append(logging.FileHandler(filename))
    logging.basicConfig(level=getattr(logging, str(level).upper()), format=fmt,
                        handlers=handlers, force=True)
