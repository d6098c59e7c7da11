#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Version: v1.1
Date: 2022-07-11
Description: Earth Engine image source. Selects the Sentinel-1 and Sentinel-2 collections
             over a site, applies the additional border noise correction and the cloud
             mask on the server, and downloads every image as an in-memory Raster.
"""

import logging

import ee
import numpy as np
import pandas as pd

from .exceptions import ConfigError
from .raster import Raster, RasterSeries

logger = logging.getLogger(__name__)

# value of masked pixels in downloaded images
NODATA = -9999.0

S1_COLLECTION = 'COPERNICUS/S1_GRD_FLOAT'
S2_COLLECTION = 'COPERNICUS/S2_HARMONIZED'


def site_footprint(lon, lat, buffer=200):
    """Circular footprint of ``buffer`` metres around a point site."""
    return ee.Geometry.Point(lon, lat).buffer(buffer)


def footprint_bounds(footprint):
    """(west, south, east, north) of a geometry in degrees."""
    coords = ee.Geometry(footprint).bounds().coordinates().getInfo()[0]
    xs = [c[0] for c in coords]
    ys = [c[1] for c in coords]
    return min(xs), min(ys), max(xs), max(ys)


# ---------------------------------------------------------------------------//
# Additional Border Noise Removal
# ---------------------------------------------------------------------------//

def f_mask_edges(image, min_angle=30.63993, max_angle=45.23993):
    """
    Mask out border noise artefacts, i.e. incidence angles outside
    (min_angle, max_angle). Adopted from Hird et al. 2017 Remote Sensing
    (supplementary material): http://www.mdpi.com/2072-4292/9/12/1315

    Parameters
    ----------
    image : ee.Image
        image with an 'angle' band

    Returns
    -------
    ee.Image
        Masked image

    """
    ang = image.select(['angle'])
    mask = ang.gt(min_angle).And(ang.lt(max_angle))
    return image.updateMask(mask).set('system:time_start', image.get('system:time_start'))


# ---------------------------------------------------------------------------//
# Cloud mask and NDVI
# ---------------------------------------------------------------------------//

def maskcloud(image):
    """Mask opaque clouds (QA60 bit 10) and cirrus (bit 11) of a Sentinel-2 image."""
    qa = image.select('QA60')
    cloudBitMask = 1 << 10
    cirrusBitMask = 1 << 11
    mask = qa.bitwiseAnd(cloudBitMask).eq(0).And(qa.bitwiseAnd(cirrusBitMask).eq(0))
    return ee.Image(image.updateMask(mask).select('B.*').copyProperties(image, ['system:time_start']))


def addNDVI(image):
    ndvi = image.normalizedDifference(['B8', 'B4']).toFloat().rename('ndvi')
    return image.addBands(ndvi)


# ---------------------------------------------------------------------------//
# Download
# ---------------------------------------------------------------------------//

def image_to_raster(image, footprint, bands, scale, crs='EPSG:4326'):
    """
    Download the bands of an image over a footprint.

    Parameters
    ----------
    image : ee.Image
        Image to download
    footprint : ee.Geometry
        Region to sample
    bands : list of str
        Bands to download
    scale : float
        Pixel size in metres
    crs : str
        Projection of the downloaded grid

    Returns
    -------
    Raster
        Masked pixels are NaN

    """
    sample = (image.select(bands)
              .reproject(crs=crs, scale=scale)
              .sampleRectangle(region=footprint, defaultValue=NODATA)
              .getInfo())
    props = sample['properties']
    output = {}
    for b in bands:
        arr = np.array(props[b], dtype=float)
        output[b] = np.where(arr == NODATA, np.nan, arr)
    return Raster(output)


def collection_to_series(coll, footprint, bands, scale, crs='EPSG:4326'):
    """Download every image of a collection, ordered by 'system:time_start'."""
    size = coll.size().getInfo()
    logger.info('Number of images in collection: %d', size)
    if size == 0:
        return RasterSeries()
    times = coll.aggregate_array('system:time_start').getInfo()
    imlist = coll.toList(size)
    frames = []
    for idx in range(size):
        img = ee.Image(imlist.get(idx))
        frames.append((pd.Timestamp(times[idx], unit='ms'),
                       image_to_raster(img, footprint, bands, scale, crs)))
    return RasterSeries(frames)


# ---------------------------------------------------------------------------//
# Data selection
# ---------------------------------------------------------------------------//

def select_s1(footprint, date_range, polarization='VVVH', orbit_direction='BOTH',
              platform_number=None, orbit_num=None, band_filter=None):
    """
    Select the Sentinel-1 IW images over a footprint.

    Returns
    -------
    ee.ImageCollection, list of str
        The collection and the bands it holds (polarizations and 'angle')

    """
    pol_bands = {'VV': ['VV'], 'VH': ['VH'], 'VVVH': ['VV', 'VH']}
    if polarization not in pol_bands:
        raise ConfigError("ERROR!!! Parameter POLARIZATION not correctly defined")
    if orbit_direction not in ['ASCENDING', 'DESCENDING', 'BOTH']:
        raise ConfigError("ERROR!!! Parameter ORBIT not correctly defined")

    start, stop = date_range
    s1 = ee.ImageCollection(S1_COLLECTION) \
        .filter(ee.Filter.eq('instrumentMode', 'IW')) \
        .filter(ee.Filter.eq('resolution_meters', 10)) \
        .filterDate(start, stop) \
        .filterBounds(footprint)

    for pol in pol_bands[polarization]:
        s1 = s1.filter(ee.Filter.listContains('transmitterReceiverPolarisation', pol))

    if platform_number in ('A', 'B'):
        s1 = s1.filter(ee.Filter.eq('platform_number', platform_number))

    if orbit_num is not None:
        s1 = s1.filter(ee.Filter.eq('relativeOrbitNumber_start', orbit_num))

    if orbit_direction != 'BOTH':
        s1 = s1.filter(ee.Filter.eq('orbitProperties_pass', orbit_direction))

    bands = pol_bands[polarization]
    if band_filter is not None:
        bands = [b for b in bands if b in band_filter]
        if not bands:
            raise ConfigError("ERROR!!! band filter {} selects no {} band".format(band_filter, polarization))
    bands = bands + ['angle']
    return s1.select(bands), bands


def fetch_series(footprint, date_range, band_filter=None, polarization='VVVH', orbit_direction='BOTH',
                 scale=10, platform_number=None, orbit_num=None, apply_border_noise_correction=True,
                 crs='EPSG:4326'):
    """
    Download the Sentinel-1 backscatter (linear) and incidence angle images over a site.

    Parameters
    ----------
    footprint : ee.Geometry
        Region of interest
    date_range : tuple
        (start, stop) dates, stop exclusive
    band_filter : list of str, optional
        Polarization bands to keep
    polarization : str
        'VV', 'VH' or 'VVVH'
    orbit_direction : str
        'ASCENDING', 'DESCENDING' or 'BOTH'
    scale : float
        Pixel size in metres
    platform_number : str, optional
        'A' or 'B'
    orbit_num : int, optional
        Relative orbit number
    apply_border_noise_correction : bool
        Mask the near and far range border noise
    crs : str
        Projection of the downloaded grid

    Returns
    -------
    RasterSeries

    """
    s1, bands = select_s1(footprint, date_range, polarization, orbit_direction,
                          platform_number, orbit_num, band_filter)
    if apply_border_noise_correction:
        s1 = s1.map(f_mask_edges)
        logger.info('Additional border noise correction is completed')
    return collection_to_series(s1.sort('system:time_start'), footprint, bands, scale, crs)


def fetch_ndvi_series(footprint, date_range, cloud_threshold=40, scale=20, crs='EPSG:4326'):
    """
    Download the cloud masked Sentinel-2 NDVI images over a site.

    Parameters
    ----------
    footprint : ee.Geometry
        Region of interest
    date_range : tuple
        (start, stop) dates, stop exclusive
    cloud_threshold : float
        Maximum CLOUDY_PIXEL_PERCENTAGE of an image
    scale : float
        Pixel size in metres

    Returns
    -------
    RasterSeries
        Single band 'ndvi' series

    """
    start, stop = date_range
    s2 = ee.ImageCollection(S2_COLLECTION) \
        .filter(ee.Filter.date(start, stop)) \
        .filter(ee.Filter.lt('CLOUDY_PIXEL_PERCENTAGE', cloud_threshold)) \
        .filter(ee.Filter.bounds(footprint))
    ndviCol = s2.map(maskcloud).map(addNDVI).select('ndvi')
    return collection_to_series(ndviCol.sort('system:time_start'), footprint, ['ndvi'], scale, crs)
