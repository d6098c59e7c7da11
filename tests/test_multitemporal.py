import logging

import numpy as np
import pytest

from s1_sm.config import FilterConfig
from s1_sm.exceptions import ConfigError, InsufficientDataError
from s1_sm.raster import Raster, RasterSeries
from s1_sm.speckle_filter import MonoTemporal_Filter, MultiTemporal_Filter, filter_speckle, temporal_neighbours

from .conftest import constant_series, monthly, speckle


def _speckled_series(n, rng, shape=(30, 30)):
    scene = np.ones(shape)
    return RasterSeries((t, Raster({'VV': speckle(scene, 5, rng)})) for t in monthly(n))


def test_strict_neighbours_need_enough_images():
    with pytest.raises(InsufficientDataError):
        temporal_neighbours(3, 0, 5, strict=True)
    assert temporal_neighbours(6, 0, 5, strict=True) == [1, 2, 3, 4, 5]


def test_neighbours_reject_bad_arguments():
    with pytest.raises(ConfigError):
        temporal_neighbours(5, 2, 0)
    with pytest.raises(IndexError):
        temporal_neighbours(5, 5, 2)


def test_constant_collection_end_to_end():
    series = constant_series(5.0, 12)
    config = FilterConfig('LEE', 'MULTI', kernel_size=7, nr_of_images=5)
    out = filter_speckle(series, config)
    assert len(out) == 12
    assert out.timestamps == series.timestamps
    for raster in out.rasters:
        np.testing.assert_allclose(raster['VV'], 5.0, rtol=1e-9)
        np.testing.assert_array_equal(raster['angle'], 38.0)


def test_single_neighbour_on_identical_images_matches_mono():
    series = constant_series(0.3, 2)
    mono = MonoTemporal_Filter(series, 5, 'GAMMA MAP')
    multi = MultiTemporal_Filter(series, 5, 'GAMMA MAP', 1)
    for a, b in zip(mono.rasters, multi.rasters):
        np.testing.assert_allclose(a['VV'], b['VV'])


def test_multitemporal_reduces_variance(rng):
    series = _speckled_series(8, rng)
    out = MultiTemporal_Filter(series, 5, 'BOXCAR', 5)
    raw = series.rasters[7]['VV']
    filtered = out.rasters[7]['VV']
    assert filtered.mean() == pytest.approx(raw.mean(), rel=0.1)
    assert np.var(filtered) < np.var(raw) / 2


def test_masked_pixel_only_masks_its_own_image(rng):
    series = _speckled_series(4, rng, shape=(12, 12))
    vv = series.rasters[0]['VV'].copy()
    vv[3, 3] = np.nan
    frames = list(series)
    frames[0] = (frames[0].timestamp, Raster({'VV': vv}))
    out = MultiTemporal_Filter(RasterSeries(frames), 3, 'LEE', 2)
    assert np.isnan(out.rasters[0]['VV'][3, 3])
    for raster in out.rasters[1:]:
        assert np.all(np.isfinite(raster['VV']))


def test_short_collection_uses_all_images(caplog):
    series = constant_series(1.0, 3)
    with caplog.at_level(logging.WARNING, logger='s1_sm.speckle_filter'):
        out = MultiTemporal_Filter(series, 3, 'LEE', 10)
    assert len(out) == 3
    assert 'fewer than' in caplog.text


def test_empty_collection():
    assert len(filter_speckle(RasterSeries(), FilterConfig())) == 0


def test_mono_framework_dispatch(speckled_image):
    series = RasterSeries([('2019-01-01', speckled_image), ('2019-01-13', speckled_image)])
    config = FilterConfig('REFINED LEE', 'MONO', nr_of_images=0)
    out = filter_speckle(series, config)
    expected = MonoTemporal_Filter(series, 7, 'REFINED LEE')
    for a, b in zip(out.rasters, expected.rasters):
        np.testing.assert_array_equal(a['VV'], b['VV'])


def test_parallel_filtering_matches_serial(rng):
    series = _speckled_series(5, rng, shape=(16, 16))
    serial = MultiTemporal_Filter(series, 5, 'LEE', 2)
    parallel = MultiTemporal_Filter(series, 5, 'LEE', 2, max_workers=3)
    for a, b in zip(serial.rasters, parallel.rasters):
        np.testing.assert_array_equal(a['VV'], b['VV'])


@pytest.mark.parametrize('kwargs', [
    {'kernel_size': 4},
    {'kernel_size': 1},
    {'framework': 'MULTI', 'nr_of_images': 0},
    {'kind': 'MEDIAN'},
    {'framework': 'BOTH'},
    {'enl': 0},
])
def test_invalid_filter_config(kwargs):
    with pytest.raises(ConfigError):
        FilterConfig(**kwargs)


def test_filter_speckle_requires_config():
    with pytest.raises(ConfigError):
        filter_speckle(constant_series(1.0, 2), {'SPECKLE_FILTER': 'LEE'})


def test_lee_sigma_uses_its_own_looks(speckled_image):
    series = RasterSeries([('2019-01-01', speckled_image)])
    a = filter_speckle(series, FilterConfig('LEE SIGMA', 'MONO', 5, enl=5))
    b = filter_speckle(series, FilterConfig('LEE SIGMA', 'MONO', 5, enl=2))
    np.testing.assert_array_equal(a.rasters[0]['VV'], b.rasters[0]['VV'])
