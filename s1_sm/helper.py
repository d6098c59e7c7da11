#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Version: v1.2
Date: 2022-07-11
Description: Format conversion and export of processed image collections
"""

import logging
import os

import numpy as np
import rasterio
from rasterio.transform import from_origin

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------//
# Linear to db scale
# ---------------------------------------------------------------------------//


def lin_to_db(image, bands=None):
    """
    Convert backscatter from linear to dB.

    Parameters
    ----------
    image : Raster
        Image to convert
    bands : list of str, optional
        Bands to convert, all but 'angle' by default

    Returns
    -------
    Raster
        output image, non-positive values are masked

    """
    bandNames = bands or [b for b in image.band_names if b != 'angle']
    with np.errstate(divide='ignore', invalid='ignore'):
        db = {b: np.where(image[b] > 0, 10.0 * np.log10(image[b]), np.nan) for b in bandNames}
    return image.add_bands(db, overwrite=True)


def db_to_lin(image, bands=None):
    """
    Convert backscatter from dB to linear. Not part of the processing chain, for
    callers working with dB output.

    Parameters
    ----------
    image : Raster
        Image to convert
    bands : list of str, optional
        Bands to convert, all but 'angle' by default

    Returns
    -------
    Raster
        output image

    """
    bandNames = bands or [b for b in image.band_names if b != 'angle']
    lin = {b: np.power(10.0, image[b] / 10.0) for b in bandNames}
    return image.add_bands(lin, overwrite=True)


# ---------------------------------------------------------------------------//
# Add ratio bands
# ---------------------------------------------------------------------------//

def add_ratio_lin(image):
    """
    Adding ratio band for visualization. Not part of the processing chain.

    Parameters
    ----------
    image : Raster
        Image with linear VV and VH bands

    Returns
    -------
    Raster
        Image containing the ratio band

    """
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = np.where(image['VH'] != 0, image['VV'] / image['VH'], np.nan)
    return image.add_bands({'VVVH_ratio': ratio}, overwrite=True)


# ---------------------------------------------------------------------------//
# Export
# ---------------------------------------------------------------------------//

def export_series(series, destination, scale, region, crs='EPSG:4326'):
    """
    Write every image of a collection as a float GeoTIFF named after its date.

    Parameters
    ----------
    series : RasterSeries
        Collection to export
    destination : str
        Output directory, created if missing
    scale : float
        Pixel size in units of ``crs``
    region : tuple
        (west, south, east, north) bounds of the images in units of ``crs``
    crs : str
        Coordinate reference system of ``region``

    Returns
    -------
    list of str
        Paths of the written files

    """
    west, south, east, north = region
    os.makedirs(destination, exist_ok=True)
    transform = from_origin(west, north, scale, scale)

    shape = series.shape
    if shape is not None:
        expected = (int(round((north - south) / scale)), int(round((east - west) / scale)))
        if expected != shape:
            logger.warning('Images are %s pixels but region and scale give %s', shape, expected)

    paths = []
    for timestamp, image in series:
        name = timestamp.strftime('%Y%m%dT%H%M%S')
        path = os.path.join(destination, name + '.tif')
        rows, cols = image.shape
        with rasterio.open(path, 'w', driver='GTiff', height=rows, width=cols,
                           count=len(image.band_names), dtype='float32', crs=crs,
                           transform=transform, nodata=np.nan) as dst:
            for i, b in enumerate(image.band_names, start=1):
                dst.write(image[b].astype('float32'), i)
                dst.set_band_description(i, b)
        logger.info('Exporting %s to %s', name, path)
        paths.append(path)
    return paths
