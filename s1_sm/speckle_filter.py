#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Version: v1.1
Date: 2022-07-11
Description: A collection of functions to perform mono-temporal and multi-temporal speckle
             filtering on in-memory Sentinel-1 rasters (linear backscatter, not dB).
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

import numpy as np
from scipy import ndimage

from .config import FilterConfig, FilterKind, Framework
from .exceptions import ConfigError, InsufficientDataError
from .raster import RasterSeries
from .statistics import Window, local_stats, neighborhood_stats

logger = logging.getLogger(__name__)


def _band_names(image, bands=None):
    if bands is None:
        return [b for b in image.band_names if b != 'angle']
    return list(bands)


def _lee_weight(cv2, cu2):
    """
    Lee correction factor k = 1 - Cu^2 / CV^2, clamped to [0, 1].

    Homogeneous pixels (CV <= Cu) get k = 0, i.e. the local mean.
    """
    with np.errstate(divide='ignore', invalid='ignore'):
        k = 1.0 - cu2 / cv2
    k = np.where(cv2 > cu2, k, 0.0)
    return np.clip(np.nan_to_num(k, nan=0.0), 0.0, 1.0)


def _keep_mask(band, output):
    # masked input pixels stay masked, nothing else becomes masked
    return np.where(np.isfinite(band), output, np.nan)


# ---------------------------------------------------------------------------//
# 1.SPECKLE FILTERS
# ---------------------------------------------------------------------------//

def boxcar(image, KERNEL_SIZE, bands=None):
    """
    Apply boxcar filter on one image.

    Parameters
    ----------
    image : Raster
        Image to be filtered
    KERNEL_SIZE : positive odd integer
        Neighbourhood window size
    bands : list of str, optional
        Bands to filter, all but 'angle' by default

    Returns
    -------
    Raster
        Filtered Image

    """
    output = {}
    for b in _band_names(image, bands):
        mean = local_stats(image[b], KERNEL_SIZE).mean
        output[b] = _keep_mask(image[b], mean)
    return image.add_bands(output, overwrite=True)


def leefilter(image, KERNEL_SIZE, bands=None, enl=5):
    """
    Lee Filter applied to one image.
    It is implemented as described in
    J. S. Lee, “Digital image enhancement and noise filtering by use of local statistics,”
    IEEE Pattern Anal. Machine Intell., vol. PAMI-2, pp. 165–168, Mar. 1980.

    Parameters
    ----------
    image : Raster
        Image to be filtered
    KERNEL_SIZE : positive odd integer
        Neighbourhood window size
    bands : list of str, optional
        Bands to filter, all but 'angle' by default
    enl : float
        Equivalent number of looks. S1-GRD images are multilooked 5 times in range

    Returns
    -------
    Raster
        Filtered Image

    """
    # speckle coefficient of variation
    cu2 = 1.0 / enl
    output = {}
    for b in _band_names(image, bands):
        z = image[b]
        stats = local_stats(z, KERNEL_SIZE)
        k = _lee_weight(stats.cv ** 2, cu2)
        output[b] = _keep_mask(z, stats.mean + k * (z - stats.mean))
    return image.add_bands(output, overwrite=True)


def gammamap(image, KERNEL_SIZE, bands=None, enl=5):
    """
    Gamma Maximum a-posterior Filter applied to one image. It is implemented as described in
    Lopes A., Nezry, E., Touzi, R., and Laur, H., 1990.
    Maximum A Posteriori Speckle Filtering and First Order texture Models in SAR Images.
    International  Geoscience  and  Remote  Sensing  Symposium (IGARSS).

    Parameters
    ----------
    image : Raster
        Image to be filtered
    KERNEL_SIZE : positive odd integer
        Neighbourhood window size
    bands : list of str, optional
        Bands to filter, all but 'angle' by default
    enl : float
        Equivalent number of looks

    Returns
    -------
    Raster
        Filtered Image

    """
    # noise coefficient of variation (or noise sigma)
    cu = 1.0 / math.sqrt(enl)
    # threshold for the observed coefficient of variation
    cmax = math.sqrt(2.0) * cu

    output = {}
    for b in _band_names(image, bands):
        img = image[b]
        stats = local_stats(img, KERNEL_SIZE)
        z = stats.mean
        ci = stats.cv

        with np.errstate(divide='ignore', invalid='ignore'):
            alpha = (1.0 + cu ** 2) / (ci ** 2 - cu ** 2)
            beta = alpha - enl - 1.0
            # equation 11 in Lopes et al. 1990
            gamma = z ** 2 * beta ** 2 + 4.0 * alpha * enl * img * z
            rHat = (z * beta + np.sqrt(np.maximum(gamma, 0.0))) / (2.0 * alpha)

        # ci <= cu: homogeneous region -> boxcar
        # cu < ci < cmax: textured medium -> Gamma MAP
        # ci >= cmax: strong signal -> retain
        filtered = np.where(ci <= cu, z, np.where(ci < cmax, rHat, img))
        output[b] = _keep_mask(img, filtered)
    return image.add_bands(output, overwrite=True)


_RECT = np.vstack([np.zeros((3, 7)), np.ones((4, 7))])
_DIAG = np.tril(np.ones((7, 7)))


class Direction(Enum):
    """
    Directional 7x7 sub-windows of the refined Lee filter. The value is
    (base window, number of counter-clockwise quarter turns).
    """
    S = ('rect', 0)
    SW = ('diag', 0)
    E = ('rect', 1)
    SE = ('diag', 1)
    N = ('rect', 2)
    NE = ('diag', 2)
    W = ('rect', 3)
    NW = ('diag', 3)

    @property
    def kernel(self):
        base, turns = self.value
        return np.rot90(_RECT if base == 'rect' else _DIAG, turns)


# (sampled window pair of each gradient, the two complementary directions)
_GRADIENTS = [((1, 7), (Direction.S, Direction.N)),
              ((6, 2), (Direction.SW, Direction.NE)),
              ((3, 5), (Direction.E, Direction.W)),
              ((0, 8), (Direction.SE, Direction.NW))]


def _shift(arr, dy, dx):
    """arr[y + dy, x + dx], repeating the border outside the image."""
    r = max(abs(dy), abs(dx))
    padded = np.pad(arr, r, mode='edge')
    rows, cols = arr.shape
    return padded[r + dy:r + dy + rows, r + dx:r + dx + cols]


def RefinedLee(image, bands=None):
    """
    Refined Lee speckle filter (J.S. Lee et al. 1999) applied to one image.
    This filter is modified from the implementation by Guido Lemoine
    Source: Lemoine et al. https://code.earthengine.google.com/5d1ed0a0f0417f098fdfd2fa137c3d0c

    Parameters
    ----------
    image : Raster
        Image to be filtered, linear scale
    bands : list of str, optional
        Bands to filter, all but 'angle' by default

    Returns
    -------
    Raster
        Filtered Image

    """
    output = {}
    for b in _band_names(image, bands):
        img = image[b]

        mean3, variance3, _ = neighborhood_stats(img, np.ones((3, 3)))

        # Use a sample of the 3x3 windows inside a 7x7 windows to determine gradients and directions
        offsets = [(dy, dx) for dy in (-2, 0, 2) for dx in (-2, 0, 2)]
        sample_mean = np.stack([_shift(mean3, dy, dx) for dy, dx in offsets])
        sample_var = np.stack([_shift(variance3, dy, dx) for dy, dx in offsets])

        # Determine the 4 gradients for the sampled windows and keep the strongest
        gradients = np.stack([np.abs(sample_mean[i] - sample_mean[j]) for (i, j), _ in _GRADIENTS])
        gradient = np.argmax(np.nan_to_num(gradients, nan=-1.0), axis=0)

        # directional statistics for the 8 half windows
        directions = list(Direction)
        dir_stats = [neighborhood_stats(img, d.kernel) for d in directions]
        dir_mean = np.stack([s[0] for s in dir_stats])
        dir_var = np.stack([s[1] for s in dir_stats])

        # of the two half windows along the edge, use the one with the lower variance
        first = np.array([directions.index(pair[0]) for _, pair in _GRADIENTS])[gradient]
        second = np.array([directions.index(pair[1]) for _, pair in _GRADIENTS])[gradient]
        var_first = np.take_along_axis(dir_var, first[None], axis=0)[0]
        var_second = np.take_along_axis(dir_var, second[None], axis=0)[0]
        choice = np.where(np.nan_to_num(var_second, nan=np.inf) < np.nan_to_num(var_first, nan=np.inf),
                          second, first)
        mean = np.take_along_axis(dir_mean, choice[None], axis=0)[0]
        var = np.take_along_axis(dir_var, choice[None], axis=0)[0]

        # Calculate localNoiseVariance from the 5 most homogeneous sampled windows
        with np.errstate(divide='ignore', invalid='ignore'):
            sample_stats = sample_var / (sample_mean * sample_mean)
        sample_stats = np.where(sample_mean != 0, sample_stats, 0.0)
        sigmaV = np.nanmean(np.sort(sample_stats, axis=0)[:5], axis=0)
        sigmaV = np.nan_to_num(sigmaV, nan=0.0)

        with np.errstate(divide='ignore', invalid='ignore'):
            cv2 = np.where(mean != 0, var / (mean * mean), 0.0)
        k = _lee_weight(cv2, sigmaV)
        output[b] = _keep_mask(img, mean + k * (img - mean))
    return image.add_bands(output, overwrite=True)


# Lookup table (J.S.Lee et al 2009) for range and eta values for intensity (4 look)
LEE_SIGMA_LUT = {0.5: {'I1': 0.694, 'I2': 1.385, 'eta': 0.1921},
                 0.6: {'I1': 0.630, 'I2': 1.495, 'eta': 0.2348},
                 0.7: {'I1': 0.560, 'I2': 1.627, 'eta': 0.2825},
                 0.8: {'I1': 0.480, 'I2': 1.804, 'eta': 0.3354},
                 0.9: {'I1': 0.378, 'I2': 2.094, 'eta': 0.3991},
                 0.95: {'I1': 0.302, 'I2': 2.360, 'eta': 0.4391}}


def leesigma(image, KERNEL_SIZE, bands=None, sigma=0.9, enl=4, target_kernel=3, Tk=7):
    """
    Implements the improved lee sigma filter to one image.
    It is implemented as described in, Lee, J.-S. Wen, J.-H. Ainsworth, T.L. Chen, K.-S. Chen, A.J.
    Improved sigma filter for speckle filtering of SAR imagery.
    IEEE Trans. Geosci. Remote Sens. 2009, 47, 202–213.

    Parameters
    ----------
    image : Raster
        Image to be filtered
    KERNEL_SIZE : positive odd integer
        Neighbourhood window size
    bands : list of str, optional
        Bands to filter, all but 'angle' by default
    sigma : float
        Sigma range key of the lookup table
    enl : float
        Looks of the a-priori mean estimate
    target_kernel : positive odd integer
        Window of the strong scatterer test and of the a-priori mean
    Tk : int
        Number of bright pixels in the target window to retain a pixel

    Raises
    ------
    ConfigError
        If ``sigma`` is not in the lookup table

    Returns
    -------
    Raster
        Filtered Image

    """
    if sigma not in LEE_SIGMA_LUT:
        raise ConfigError("ERROR!!! Lee sigma {} not in {}".format(sigma, sorted(LEE_SIGMA_LUT)))
    window = Window(KERNEL_SIZE)
    target = Window(target_kernel)
    lut = LEE_SIGMA_LUT[sigma]
    eta2 = 1.0 / enl

    output = {}
    for b in _band_names(image, bands):
        img = image[b]
        valid = np.isfinite(img)
        if not valid.any():
            output[b] = img
            continue

        # select the strong scatterers to retain
        z98 = np.nanpercentile(img, 98)
        bright = valid & (np.where(valid, img, -np.inf) >= z98)
        K = ndimage.correlate(bright.astype(float), target.kernel(), mode='constant', cval=0.0)
        retainPixel = K >= Tk

        # MMSE applied to estimate the a-priori mean
        stats = local_stats(img, target)
        k = _lee_weight(stats.cv ** 2, eta2)
        xTilde = stats.mean + k * (img - stats.mean)

        # establish the sigma ranges
        I1 = lut['I1'] * xTilde
        I2 = lut['I2'] * xTilde

        # MMSE over the neighbours inside the sigma range of the centre pixel
        r = window.radius
        padded = np.pad(img, r, mode='constant', constant_values=np.nan)
        rows, cols = img.shape
        n = np.zeros(img.shape)
        s1 = np.zeros(img.shape)
        s2 = np.zeros(img.shape)
        for dy in range(-r, r + 1):
            for dx in range(-r, r + 1):
                z = padded[r + dy:r + dy + rows, r + dx:r + dx + cols]
                with np.errstate(invalid='ignore'):
                    inside = np.isfinite(z) & (z >= I1) & (z <= I2)
                zf = np.where(inside, z, 0.0)
                n += inside
                s1 += zf
                s2 += zf * zf

        with np.errstate(divide='ignore', invalid='ignore'):
            z_bar = s1 / n
            varz = np.maximum(s2 / n - z_bar * z_bar, 0.0)
            cv2 = np.where(z_bar != 0, varz / (z_bar * z_bar), 0.0)
        b_weight = _lee_weight(cv2, lut['eta'] ** 2)
        xHat = np.where(n > 0, z_bar + b_weight * (img - z_bar), xTilde)

        # merge the retained pixels and the filtered pixels
        output[b] = _keep_mask(img, np.where(retainPixel, img, xHat))
    return image.add_bands(output, overwrite=True)


# ---------------------------------------------------------------------------//
# 2. MONO-TEMPORAL SPECKLE FILTER (WRAPPER)
# ---------------------------------------------------------------------------//

def _speckle_filter(SPECKLE_FILTER, KERNEL_SIZE, bands=None, enl=5):
    """Return a function applying the selected mono-temporal filter to one image."""
    kind = FilterKind.parse(SPECKLE_FILTER)
    Window(KERNEL_SIZE)

    def _filter(image):
        if kind is FilterKind.BOXCAR:
            return boxcar(image, KERNEL_SIZE, bands)
        elif kind is FilterKind.LEE:
            return leefilter(image, KERNEL_SIZE, bands, enl=enl)
        elif kind is FilterKind.GAMMA_MAP:
            return gammamap(image, KERNEL_SIZE, bands, enl=enl)
        elif kind is FilterKind.REFINED_LEE:
            return RefinedLee(image, bands)
        elif kind is FilterKind.LEE_SIGMA:
            return leesigma(image, KERNEL_SIZE, bands)
    return _filter


def _map_images(fn, images, max_workers=1):
    if max_workers and max_workers > 1 and len(images) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(fn, images))
    return [fn(image) for image in images]


def MonoTemporal_Filter(coll, KERNEL_SIZE, SPECKLE_FILTER, bands=None, enl=5, max_workers=1):
    """
    A wrapper function for monotemporal filter

    Parameters
    ----------
    coll : RasterSeries
        the image collection to be filtered
    KERNEL_SIZE : odd integer
        Spatial Neighbourhood window
    SPECKLE_FILTER : String
        Type of speckle filter
    bands : list of str, optional
        Bands to filter, all but 'angle' by default
    enl : float
        Equivalent number of looks
    max_workers : int
        Number of images filtered in parallel

    Returns
    -------
    RasterSeries
        An image collection where a mono-temporal filter is applied to each
        image individually

    """
    _filter = _speckle_filter(SPECKLE_FILTER, KERNEL_SIZE, bands, enl)
    filtered = _map_images(_filter, coll.rasters, max_workers)
    return RasterSeries(zip(coll.timestamps, filtered))


# ---------------------------------------------------------------------------//
# 3. MULTI-TEMPORAL SPECKLE FILTER
# ---------------------------------------------------------------------------//

def temporal_neighbours(n_frames, index, NR_OF_IMAGES, strict=False):
    """
    Pick the images used to filter the image at ``index`` of a time sorted collection.

    All images are taken before the image to filter; if there are not enough, the
    images following it are added, nearest in time first.

    Parameters
    ----------
    n_frames : int
        Number of images in the collection
    index : int
        Position of the image to filter
    NR_OF_IMAGES : positive integer
        Number of images to pick
    strict : bool
        Raise instead of returning fewer images when the collection is too short

    Raises
    ------
    InsufficientDataError
        If ``strict`` and the collection holds fewer than NR_OF_IMAGES other images

    Returns
    -------
    list of int
        Sorted positions, never including ``index``

    """
    if NR_OF_IMAGES < 1:
        raise ConfigError("ERROR!!! SPECKLE_FILTER_NR_OF_IMAGES not correctly defined")
    if not 0 <= index < n_frames:
        raise IndexError("image {} outside a collection of {}".format(index, n_frames))

    before = list(range(index - 1, -1, -1))[:NR_OF_IMAGES]
    missing = NR_OF_IMAGES - len(before)
    after = list(range(index + 1, n_frames))[:missing] if missing > 0 else []
    chosen = sorted(before + after)
    if strict and len(chosen) < NR_OF_IMAGES:
        raise InsufficientDataError("{} images needed around image {}, only {} available"
                                    .format(NR_OF_IMAGES, index, len(chosen)))
    return chosen


def MultiTemporal_Filter(coll, KERNEL_SIZE, SPECKLE_FILTER, NR_OF_IMAGES, bands=None, enl=5, max_workers=1):
    """
    A wrapper function for multi-temporal filter.

    The following Multi-temporal speckle filters are implemented as described in
    S. Quegan and J. J. Yu, “Filtering of multichannel SAR images,”
    IEEE Trans Geosci. Remote Sensing, vol. 39, Nov. 2001.

    Every image is filtered once with the mono-temporal filter. The output of an image is
    its own filtered value times the mean ratio (image / filtered image) over the image
    and its NR_OF_IMAGES temporal neighbours.

    Parameters
    ----------
    coll : RasterSeries
        the image collection to be filtered
    KERNEL_SIZE : odd integer
        Spatial Neighbourhood window
    SPECKLE_FILTER : String
        Type of speckle filter
    NR_OF_IMAGES : positive integer
        Number of images to use in multi-temporal filtering
    bands : list of str, optional
        Bands to filter, all but 'angle' by default
    enl : float
        Equivalent number of looks
    max_workers : int
        Number of images filtered in parallel

    Returns
    -------
    RasterSeries
        An image collection where a multi-temporal filter is applied to each
        image individually

    """
    n = len(coll)
    if n == 0:
        return RasterSeries()
    if n < NR_OF_IMAGES + 1:
        logger.warning('Collection holds %d images, fewer than the %d requested for multi-temporal '
                       'filtering; all images are used', n, NR_OF_IMAGES + 1)

    images = coll.rasters
    bands = _band_names(images[0], bands)
    filtered = MonoTemporal_Filter(coll, KERNEL_SIZE, SPECKLE_FILTER, bands, enl, max_workers).rasters

    ratios = {}
    for b in bands:
        with np.errstate(divide='ignore', invalid='ignore'):
            ratio = np.stack([image[b] / f[b] for image, f in zip(images, filtered)])
        ratios[b] = np.where(np.isfinite(ratio), ratio, np.nan)

    def Quegan(index):
        stack = [index] + temporal_neighbours(n, index, NR_OF_IMAGES)
        output = {}
        for b in bands:
            # the image's own ratio is always defined where the image is not masked
            isum = np.nansum(ratios[b][stack], axis=0)
            count = np.sum(np.isfinite(ratios[b][stack]), axis=0)
            with np.errstate(divide='ignore', invalid='ignore'):
                mean_ratio = np.where(count > 0, isum / count, np.nan)
            own = filtered[index][b]
            output[b] = np.where(own == 0, 0.0, own * mean_ratio)
            output[b] = _keep_mask(images[index][b], output[b])
        return images[index].add_bands(output, overwrite=True)

    return RasterSeries(zip(coll.timestamps, _map_images(Quegan, list(range(n)), max_workers)))


# ---------------------------------------------------------------------------//
# 4. SPECKLE FILTER DISPATCH
# ---------------------------------------------------------------------------//

def filter_speckle(series, config, bands=None):
    """
    Speckle filter a collection with the framework and filter of ``config``.

    Parameters
    ----------
    series : RasterSeries
        Collection to be filtered, linear scale
    config : FilterConfig
        Filter settings
    bands : list of str, optional
        Bands to filter, all but 'angle' by default

    Raises
    ------
    ConfigError
        If the window size or the number of images is not correctly defined

    Returns
    -------
    RasterSeries
        Filtered collection with the timestamps of ``series``

    """
    if not isinstance(config, FilterConfig):
        raise ConfigError("ERROR!!! expected a FilterConfig, got {!r}".format(config))
    config.validate()

    if config.framework is Framework.MONO:
        output = MonoTemporal_Filter(series, config.kernel_size, config.kind, bands,
                                     config.enl, config.max_workers)
        logger.info('Mono-temporal speckle filtering is completed')
    else:
        output = MultiTemporal_Filter(series, config.kernel_size, config.kind, config.nr_of_images,
                                      bands, config.enl, config.max_workers)
        logger.info('Multi-temporal speckle filtering is completed')
    return output
