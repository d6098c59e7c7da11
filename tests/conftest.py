import numpy as np
import pandas as pd
import pytest

from s1_sm.raster import Raster, RasterSeries


def monthly(n, start='2019-01-01'):
    return list(pd.date_range(start, periods=n, freq='MS'))


def constant_series(value, n, shape=(10, 10), start='2019-01-01'):
    frames = []
    for t in monthly(n, start):
        frames.append((t, Raster({'VV': np.full(shape, value), 'angle': np.full(shape, 38.0)})))
    return RasterSeries(frames)


def speckle(scene, enl, rng):
    """Multiplicative gamma distributed speckle with unit mean."""
    return scene * rng.gamma(enl, 1.0 / enl, scene.shape)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def constant_image():
    return Raster({'VV': np.full((15, 15), 0.2), 'angle': np.full((15, 15), 38.0)})


@pytest.fixture
def speckled_image(rng):
    scene = np.full((30, 30), 0.1)
    scene[:, 15:] = 0.4
    angle = np.tile(np.linspace(31, 44, 30), (30, 1))
    return Raster({'VV': speckle(scene, 5, rng), 'angle': angle})
