#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Version: v1.2
Date: 2022-07-11
Description: Wrapper functions that derive the speckle filtered Sentinel-1 collection and the
             smoothed NDVI collection of a soil moisture site
"""

import logging
import os

import pandas as pd

from . import helper
from . import imagery
from . import ndvi_interpolation as ni
from . import speckle_filter as sf
from .config import FilterConfig, check_params
from .exceptions import ConfigError

logger = logging.getLogger(__name__)


def _require(params, keys):
    missing = [k for k in keys if params.get(k) is None]
    if missing:
        raise ConfigError("ERROR!!! Parameters {} not defined".format(', '.join(missing)))


def _export(series, directory, footprint):
    region = imagery.footprint_bounds(footprint)
    # pixel size of the downloaded grid in degrees
    scale = (region[2] - region[0]) / series.shape[1]
    return helper.export_series(series, directory, scale, region)


###########################################
# DO THE JOB
###########################################

def s1_preproc(params):
    """
    Applies preprocessing to a collection of S1 images to return an analysis ready sentinel-1 data.

    Parameters
    ----------
    params : Dictionary
        These parameters determine the data selection and image processing parameters.

    Raises
    ------
    ConfigError
        If a parameter is not correctly defined

    Returns
    -------
    (RasterSeries, RasterSeries)
        The downloaded collection and the processed collection

    """
    params = check_params(params)
    _require(params, ['START_DATE', 'STOP_DATE', 'GEOMETRY'])

    APPLY_BORDER_NOISE_CORRECTION = params['APPLY_BORDER_NOISE_CORRECTION']
    APPLY_SPECKLE_FILTERING = params['APPLY_SPECKLE_FILTERING']
    POLARIZATION = params['POLARIZATION']
    PLATFORM_NUMBER = params['PLATFORM_NUMBER']
    ORBIT = params['ORBIT']
    ORBIT_NUM = params['ORBIT_NUM']
    FORMAT = params['FORMAT']
    START_DATE = params['START_DATE']
    STOP_DATE = params['STOP_DATE']
    ROI = params['GEOMETRY']
    SCALE = params['SCALE']
    SAVE_ASSETS = params['SAVE_ASSETS']
    EXPORT_DIR = params['EXPORT_DIR']

    ###########################################
    # 1. DATA SELECTION
    ###########################################

    s1 = imagery.fetch_series(ROI, (START_DATE, STOP_DATE),
                              polarization=POLARIZATION,
                              orbit_direction=ORBIT,
                              scale=SCALE,
                              platform_number=PLATFORM_NUMBER,
                              orbit_num=ORBIT_NUM,
                              apply_border_noise_correction=APPLY_BORDER_NOISE_CORRECTION)
    logger.info('Number of images in collection: %d', len(s1))

    ########################
    # 2. SPECKLE FILTERING
    #######################

    s1_1 = s1
    if APPLY_SPECKLE_FILTERING and len(s1):
        s1_1 = sf.filter_speckle(s1_1, FilterConfig.from_params(params))

    ########################
    # 3. OUTPUT
    #######################

    if FORMAT == 'DB':
        s1_1 = s1_1.map(helper.lin_to_db)

    if SAVE_ASSETS and len(s1_1):
        paths = _export(s1_1, os.path.join(EXPORT_DIR, 's1'), ROI)
        logger.info('Exported %d images to %s', len(paths), EXPORT_DIR)
    return s1, s1_1


def ndvi_preproc(params):
    """
    Derives a regularly spaced, smoothed NDVI collection for the dates of the S1 processing.

    Parameters
    ----------
    params : Dictionary
        Data selection, NDVI_INTERVAL, NDVI_WINDOW_DAYS, SG_ORDER and PERCENTILES parameters.

    Raises
    ------
    ConfigError
        If a parameter is not correctly defined

    Returns
    -------
    (RasterSeries, RasterSeries)
        The cloud masked NDVI collection and the smoothed collection

    """
    params = check_params(params)
    _require(params, ['START_DATE', 'STOP_DATE', 'GEOMETRY'])

    START_DATE = params['START_DATE']
    STOP_DATE = params['STOP_DATE']
    ROI = params['GEOMETRY']

    ndvi = imagery.fetch_ndvi_series(ROI, (START_DATE, STOP_DATE),
                                     cloud_threshold=params['CLOUD_THRESHOLD'],
                                     scale=params['NDVI_SCALE'])
    logger.info('Number of NDVI images in collection: %d', len(ndvi))

    # STOP_DATE is excluded from the image selection, so the grid ends the day before
    smoothed = ni.interpolate_and_smooth(ndvi,
                                         params['NDVI_INTERVAL'],
                                         params['NDVI_WINDOW_DAYS'],
                                         order=params['SG_ORDER'],
                                         percentile_band=params['PERCENTILES'],
                                         start=START_DATE,
                                         end=pd.Timestamp(STOP_DATE) - ni.ONE_DAY)
    logger.info('NDVI interpolation and Savitzky-Golay smoothing is completed')

    if params['SAVE_ASSETS'] and len(smoothed):
        _export(smoothed, os.path.join(params['EXPORT_DIR'], 'ndvi'), ROI)
    return ndvi, smoothed
