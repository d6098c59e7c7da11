import numpy as np
import pytest

from s1_sm.exceptions import ConfigError
from s1_sm.raster import Raster
from s1_sm.speckle_filter import (Direction, RefinedLee, boxcar, gammamap, leefilter, leesigma,
                                  temporal_neighbours)
from s1_sm.statistics import local_stats

FILTERS = {
    'boxcar': lambda image: boxcar(image, 5),
    'lee': lambda image: leefilter(image, 5),
    'gamma map': lambda image: gammamap(image, 5),
    'refined lee': lambda image: RefinedLee(image),
    'lee sigma': lambda image: leesigma(image, 5),
}


@pytest.mark.parametrize('name', sorted(FILTERS))
def test_homogeneous_image_is_unchanged(name, constant_image):
    out = FILTERS[name](constant_image)
    np.testing.assert_allclose(out['VV'], 0.2, rtol=1e-9)
    assert out.band_names == constant_image.band_names


@pytest.mark.parametrize('name', sorted(FILTERS))
def test_angle_band_untouched(name, speckled_image):
    out = FILTERS[name](speckled_image)
    np.testing.assert_array_equal(out['angle'], speckled_image['angle'])


@pytest.mark.parametrize('name', sorted(FILTERS))
def test_output_non_negative(name, speckled_image):
    out = FILTERS[name](speckled_image)
    assert np.all(out['VV'] >= 0)


@pytest.mark.parametrize('name', sorted(FILTERS))
def test_masked_pixels_stay_masked(name, speckled_image):
    vv = speckled_image['VV'].copy()
    vv[10, 12] = np.nan
    vv[0, 0] = np.nan
    out = FILTERS[name](speckled_image.add_bands({'VV': vv}))['VV']
    np.testing.assert_array_equal(np.isnan(out), np.isnan(vv))


def test_boxcar_is_local_mean(speckled_image):
    out = boxcar(speckled_image, 5)
    np.testing.assert_allclose(out['VV'], local_stats(speckled_image['VV'], 5).mean)


def test_lee_between_mean_and_pixel(speckled_image):
    vv = speckled_image['VV']
    mean = local_stats(vv, 7).mean
    out = leefilter(speckled_image, 7)['VV']
    tol = 1e-12
    assert np.all(out >= np.minimum(mean, vv) - tol)
    assert np.all(out <= np.maximum(mean, vv) + tol)


def test_only_selected_bands_filtered(speckled_image):
    image = speckled_image.add_bands({'VH': speckled_image['VV'] / 4})
    out = leefilter(image, 5, bands=['VH'])
    np.testing.assert_array_equal(out['VV'], image['VV'])
    assert not np.allclose(out['VH'], image['VH'])


def test_gammamap_keeps_strong_scatterer():
    vv = np.full((15, 15), 0.1)
    vv[7, 7] = 100.0
    out = gammamap(Raster({'VV': vv}), 5)['VV']
    assert out[7, 7] == 100.0
    assert out[0, 0] == pytest.approx(0.1)


def test_refined_lee_preserves_step_edge():
    step = np.full((20, 20), 0.1)
    step[:, 10:] = 0.5
    image = Raster({'VV': step})
    np.testing.assert_allclose(RefinedLee(image)['VV'], step, atol=1e-9)
    # a plain boxcar blurs the same edge
    assert boxcar(image, 7)['VV'][5, 9] > 0.2


def test_direction_kernels():
    kernels = {d: d.kernel for d in Direction}
    for kernel in kernels.values():
        assert kernel.shape == (7, 7)
        assert kernel[3, 3] == 1
    both = kernels[Direction.S] + kernels[Direction.N]
    np.testing.assert_array_equal(both[3], 2)
    assert both.min() == 1
    assert kernels[Direction.S][:3].sum() == 0
    assert kernels[Direction.N][4:].sum() == 0


def test_leesigma_retains_point_target():
    vv = np.full((15, 15), 0.1)
    vv[6:9, 6:9] = 50.0
    out = leesigma(Raster({'VV': vv}), 5)['VV']
    assert out[7, 7] == 50.0
    assert out[0, 0] == pytest.approx(0.1)


def test_leesigma_unknown_sigma(constant_image):
    with pytest.raises(ConfigError):
        leesigma(constant_image, 5, sigma=0.75)


def test_even_window_rejected(constant_image):
    with pytest.raises(ConfigError):
        leefilter(constant_image, 4)


def test_temporal_neighbours_take_preceding_images():
    for i in range(3, 10):
        assert temporal_neighbours(10, i, 3) == list(range(i - 3, i))


def test_temporal_neighbours_fill_with_following_images():
    assert temporal_neighbours(10, 0, 3) == [1, 2, 3]
    assert temporal_neighbours(10, 1, 3) == [0, 2, 3]
    assert temporal_neighbours(3, 1, 5) == [0, 2]
