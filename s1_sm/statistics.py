#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Version: v1.0
Date: 2022-07-11
Description: Local (neighbourhood) statistics used by the speckle filters.
             Pixels near the image border use the part of the window that lies
             inside the image, and NaN (masked) pixels never contribute.
"""

from collections import namedtuple

import numpy as np
from scipy import ndimage

from .exceptions import ConfigError

LocalStats = namedtuple('LocalStats', ['mean', 'variance', 'cv', 'count'])


class Window(namedtuple('Window', ['size'])):
    """Odd square neighbourhood, size >= 3, centred on the estimated pixel."""

    __slots__ = ()

    def __new__(cls, size):
        if isinstance(size, Window):
            return size
        if isinstance(size, bool) or not isinstance(size, (int, np.integer)):
            raise ConfigError("ERROR!!! Window size must be an integer, got {!r}".format(size))
        if size < 3 or size % 2 == 0:
            raise ConfigError("ERROR!!! Window size must be an odd integer >= 3, got {}".format(size))
        return super().__new__(cls, int(size))

    @property
    def radius(self):
        return self.size // 2

    def kernel(self):
        return np.ones((self.size, self.size))


# ---------------------------------------------------------------------------//
# Neighbourhood reducers
# ---------------------------------------------------------------------------//

def neighborhood_stats(data, kernel):
    """
    Weighted neighbourhood mean and variance of a band.

    Parameters
    ----------
    data : np.ndarray
        2-D band, NaN marks masked pixels
    kernel : np.ndarray
        Odd sized weights (1 inside the neighbourhood, 0 outside)

    Returns
    -------
    mean, variance, count : np.ndarray
        Variance is E[x^2] - E[x]^2 clipped at zero; mean and variance are NaN
        where the neighbourhood holds no valid pixel.

    """
    data = np.asarray(data, dtype=float)
    kernel = np.asarray(kernel, dtype=float)
    valid = np.isfinite(data)
    filled = np.where(valid, data, 0.0)

    count = ndimage.correlate(valid.astype(float), kernel, mode='constant', cval=0.0)
    s1 = ndimage.correlate(filled, kernel, mode='constant', cval=0.0)
    s2 = ndimage.correlate(filled * filled, kernel, mode='constant', cval=0.0)

    has_data = count > 0
    with np.errstate(divide='ignore', invalid='ignore'):
        mean = np.where(has_data, s1 / count, np.nan)
        variance = np.where(has_data, s2 / count - mean * mean, np.nan)
    variance = np.where(has_data, np.maximum(variance, 0.0), np.nan)
    return mean, variance, count


def local_stats(data, window):
    """
    Local mean, variance and coefficient of variation over a square window.

    Parameters
    ----------
    data : np.ndarray
        2-D band, NaN marks masked pixels
    window : Window or int
        Neighbourhood window size

    Returns
    -------
    LocalStats
        ``cv`` is sigma / |mean|, zero where the mean is zero.

    """
    window = Window(window)
    mean, variance, count = neighborhood_stats(data, window.kernel())
    with np.errstate(divide='ignore', invalid='ignore'):
        cv = np.where(mean != 0, np.sqrt(variance) / np.abs(mean), 0.0)
    cv = np.where(np.isnan(mean), np.nan, cv)
    return LocalStats(mean, variance, cv, count)
