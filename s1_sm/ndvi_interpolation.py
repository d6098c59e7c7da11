#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Version: v1.1
Date: 2022-07-11
Description: Savitzky-Golay smoothing of an NDVI time-series.

    The smoothing needs a regularly-spaced time-series, so the observed images are
    first linearly interpolated onto a regular time grid:

        Step-1: Create an empty time grid with a date every n days
        Step-2: Find the before/after images of every grid date within a time window
        Step-3: Apply linear interpolation to fill each grid date
        Step-4: Apply the Savitzky-Golay filter
        Step-5: Mask values outside a percentile band
"""

import logging
import warnings
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from .config import check_percentiles
from .exceptions import ConfigError, GapError, InsufficientDataError
from .raster import Raster, RasterSeries

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_SUFFIX = '_low_confidence'

ONE_DAY = pd.Timedelta(days=1)


def _value_bands(series, bands=None):
    if bands is not None:
        return list(bands)
    return [b for b in series.band_names if not b.endswith(LOW_CONFIDENCE_SUFFIX)]


# ---------------------------------------------------------------------------//
# Step-1: time grid
# ---------------------------------------------------------------------------//

@dataclass(frozen=True)
class TimeGrid:
    """Regular dates start, start + n days, ... up to and including end."""
    start: object
    end: object
    interval_days: int = 2

    def __post_init__(self):
        object.__setattr__(self, 'start', pd.Timestamp(self.start))
        object.__setattr__(self, 'end', pd.Timestamp(self.end))
        if self.interval_days < 1:
            raise ConfigError("ERROR!!! Grid interval must be at least one day, got {}".format(self.interval_days))
        if self.end < self.start:
            raise ConfigError("ERROR!!! Grid end {} before start {}".format(self.end, self.start))

    @property
    def timestamps(self):
        return list(pd.date_range(self.start, self.end, freq=pd.Timedelta(days=self.interval_days)))

    def __len__(self):
        return len(self.timestamps)


# ---------------------------------------------------------------------------//
# Step-2: before/after images
# ---------------------------------------------------------------------------//

@dataclass(frozen=True)
class InterpolationNode:
    """
    A grid date with the images found around it.

    ``before`` holds the frames at or before the date, nearest first, and ``after``
    the frames at or after it, nearest first. Both are limited to the time window.
    """
    timestamp: pd.Timestamp
    before: list = field(default_factory=list)
    after: list = field(default_factory=list)


def join_nodes(series, grid, window_days):
    """
    Pair every date of ``grid`` with the frames of ``series`` within ``window_days``.

    Parameters
    ----------
    series : RasterSeries
        Observed images
    grid : TimeGrid
        Dates to interpolate
    window_days : float
        Maximum time difference between a grid date and an image

    Returns
    -------
    list of InterpolationNode

    """
    if window_days <= 0:
        raise ConfigError("ERROR!!! Interpolation window must be positive, got {}".format(window_days))
    window = pd.Timedelta(days=window_days)
    frames = list(series)
    nodes = []
    for t in grid.timestamps:
        # sorted() is stable: frames with equal timestamps keep the collection order
        before = sorted((f for f in frames if t - window <= f.timestamp <= t),
                        key=lambda f: t - f.timestamp)
        after = sorted((f for f in frames if t <= f.timestamp <= t + window),
                       key=lambda f: f.timestamp - t)
        nodes.append(InterpolationNode(t, before, after))
    return nodes


# ---------------------------------------------------------------------------//
# Step-3: linear interpolation
# ---------------------------------------------------------------------------//

def _mosaic(frames, band, origin):
    """Per pixel, the first valid value of ``frames`` and its time in days from ``origin``."""
    value = None
    when = None
    for f in frames:
        data = f.raster[band]
        if value is None:
            value = np.full(data.shape, np.nan)
            when = np.full(data.shape, np.nan)
        fill = np.isnan(value) & np.isfinite(data)
        value = np.where(fill, data, value)
        when = np.where(fill, (f.timestamp - origin) / ONE_DAY, when)
    return value, when


def interpolate_node(node, bands, shape):
    """
    Fill one grid date from its before/after images.

    Pixels with an image on both sides are linearly interpolated, pixels with an
    image on one side only take that value and are flagged in the
    ``<band>_low_confidence`` band, the other pixels stay masked.

    Raises
    ------
    GapError
        If the node has no image at all within the window

    """
    if not node.before and not node.after:
        raise GapError("no image within the time window of {}".format(node.timestamp))

    empty = np.full(shape, np.nan)
    output = {}
    for b in bands:
        v1, t1 = _mosaic(node.before, b, node.timestamp) if node.before else (empty, empty)
        v2, t2 = _mosaic(node.after, b, node.timestamp) if node.after else (empty, empty)
        has1 = np.isfinite(v1)
        has2 = np.isfinite(v2)

        with np.errstate(divide='ignore', invalid='ignore'):
            timeRatio = (0.0 - t1) / (t2 - t1)
            interpolated = v1 + (v2 - v1) * timeRatio
        # an image on the grid date itself is both the before and the after image
        interpolated = np.where(t2 == t1, v1, interpolated)

        output[b] = np.where(has1 & has2, interpolated, np.where(has1, v1, v2))
        output[b + LOW_CONFIDENCE_SUFFIX] = np.where(has1 & has2, 0.0,
                                                     np.where(has1 | has2, 1.0, np.nan))
    return Raster(output)


def interpolate(series, grid, window_days, bands=None):
    """
    Linearly interpolate ``series`` onto the dates of ``grid``.

    Parameters
    ----------
    series : RasterSeries
        Observed images, NaN marks masked (e.g. cloudy) pixels
    grid : TimeGrid
        Dates to interpolate
    window_days : float
        Maximum time difference between a grid date and an image used for it
    bands : list of str, optional
        Bands to interpolate, all bands by default

    Raises
    ------
    InsufficientDataError
        If ``series`` is empty

    Returns
    -------
    RasterSeries
        One image per grid date with the interpolated bands and their
        ``<band>_low_confidence`` flag bands

    """
    if not len(series):
        raise InsufficientDataError("cannot interpolate an empty collection")
    bands = _value_bands(series, bands)
    shape = series.shape

    frames = []
    for node in join_nodes(series, grid, window_days):
        try:
            raster = interpolate_node(node, bands, shape)
        except GapError as e:
            logger.debug('%s, grid date left masked', e)
            raster = Raster.constant(np.nan, shape, [name for b in bands
                                                     for name in (b, b + LOW_CONFIDENCE_SUFFIX)])
        frames.append((node.timestamp, raster))
    return RasterSeries(frames)


# ---------------------------------------------------------------------------//
# Step-4: Savitzky-Golay filter
# ---------------------------------------------------------------------------//

def _intercepts(x, y, w, orders):
    """
    Constant term of a weighted least squares polynomial fit for every column of y.

    x : (k,) sample positions, y : (k, p) samples, w : (k, p) weights,
    orders : (p,) polynomial order of each column, -1 for no fit.
    """
    result = np.full(y.shape[1], np.nan)
    for q in np.unique(orders[orders >= 0]):
        cols = orders == q
        X = np.vander(x, q + 1, increasing=True)
        wq = w[:, cols]
        M = np.einsum('kp,ki,kj->pij', wq, X, X)
        rhs = np.einsum('kp,ki,kp->pi', wq, X, y[:, cols])
        coef = np.einsum('pij,pj->pi', np.linalg.pinv(M), rhs)
        result[cols] = coef[:, 0]
    return result


def savitzky_golay(series, days=60, order=3, bands=None, weighted=False):
    """
    Savitzky-Golay smoothing of a regularly spaced series.

    For every date a polynomial of ``order`` is fitted by least squares to the
    valid samples within +/- ``days``; its value at the date is the smoothed
    value. Pixels with fewer than order + 1 samples use a lower order.

    Parameters
    ----------
    series : RasterSeries
        Gap-filled series, usually the output of interpolate
    days : float
        Half width of the time window
    order : int
        Polynomial order
    bands : list of str, optional
        Bands to smooth; ``_low_confidence`` flag bands are passed through
    weighted : bool
        Use tricube time weights instead of equal weights

    Returns
    -------
    RasterSeries
        Series with the smoothed bands replaced; masked pixels stay masked

    """
    if isinstance(order, bool) or not isinstance(order, (int, np.integer)) or order < 0:
        raise ConfigError("ERROR!!! Savitzky-Golay order not correctly defined: {!r}".format(order))
    if days <= 0:
        raise ConfigError("ERROR!!! Savitzky-Golay window not correctly defined: {!r}".format(days))
    if not len(series):
        return RasterSeries()

    bands = _value_bands(series, bands)
    t0 = series.timestamps[0]
    t = np.array([(ts - t0) / ONE_DAY for ts in series.timestamps])

    smoothed = {}
    for b in bands:
        Y = series.stack(b)
        Y2 = Y.reshape(len(t), -1)
        out = np.full(Y2.shape, np.nan)
        for c in range(len(t)):
            sel = np.abs(t - t[c]) <= days
            x = (t[sel] - t[c]) / days
            y = Y2[sel]
            w = np.isfinite(y).astype(float)
            if weighted:
                w = w * ((1.0 - np.abs(x) ** 3) ** 3)[:, None]
            n = np.sum(w > 0, axis=0)
            orders = np.minimum(order, n - 1)
            out[c] = _intercepts(x, np.where(w > 0, y, 0.0), w, orders)
        out = np.where(np.isfinite(Y2), out, np.nan)
        smoothed[b] = out.reshape(Y.shape)

    rasters = [raster.add_bands({b: smoothed[b][i] for b in bands}) for i, raster in enumerate(series.rasters)]
    return RasterSeries(zip(series.timestamps, rasters))


# ---------------------------------------------------------------------------//
# Step-5: percentile clipping
# ---------------------------------------------------------------------------//

def clip_percentiles(series, low=5, high=95, bands=None):
    """
    Mask samples outside the [low, high] percentile band of each pixel's series.

    Parameters
    ----------
    series : RasterSeries
        Smoothed series
    low, high : float
        Percentiles, 0 <= low < high <= 100
    bands : list of str, optional
        Bands to clip; ``_low_confidence`` flag bands are passed through

    Returns
    -------
    RasterSeries
        Series with out of band samples masked, other samples unchanged

    """
    low, high = check_percentiles((low, high))
    if not len(series):
        return RasterSeries()
    bands = _value_bands(series, bands)

    clipped = {}
    for b in bands:
        Y = series.stack(b)
        with warnings.catch_warnings():
            # all-NaN pixels have no percentile
            warnings.simplefilter('ignore', RuntimeWarning)
            lo = np.nanpercentile(Y, low, axis=0)
            hi = np.nanpercentile(Y, high, axis=0)
        with np.errstate(invalid='ignore'):
            outside = (Y < lo) | (Y > hi)
        clipped[b] = np.where(outside, np.nan, Y)

    rasters = [raster.add_bands({b: clipped[b][i] for b in bands}) for i, raster in enumerate(series.rasters)]
    return RasterSeries(zip(series.timestamps, rasters))


def interpolate_and_smooth(series, grid_interval, window, order=3, percentile_band=(5, 95),
                           start=None, end=None, bands=None, weighted=False):
    """
    Interpolate ``series`` onto a regular grid, smooth it and clip outliers.

    Parameters
    ----------
    series : RasterSeries
        Observed images (e.g. NDVI)
    grid_interval : int
        Days between grid dates
    window : float
        Time window in days, used to find the before/after images and as the
        Savitzky-Golay half width
    order : int
        Savitzky-Golay polynomial order
    percentile_band : tuple
        (low, high) percentiles of the clipping
    start, end : date-like, optional
        Grid limits, the first and last image dates by default
    bands : list of str, optional
        Bands to process
    weighted : bool
        Tricube time weights in the Savitzky-Golay fit

    Returns
    -------
    RasterSeries

    """
    low, high = check_percentiles(percentile_band)
    if not len(series):
        raise InsufficientDataError("cannot interpolate an empty collection")
    grid = TimeGrid(start if start is not None else series.timestamps[0],
                    end if end is not None else series.timestamps[-1],
                    grid_interval)
    logger.info('Interpolating %d images onto %d dates', len(series), len(grid))
    interpolated = interpolate(series, grid, window, bands)
    smoothed = savitzky_golay(interpolated, window, order, bands, weighted)
    return clip_percentiles(smoothed, low, high, bands)
