import numpy as np
import pandas as pd
import pytest

from s1_sm.raster import Raster, RasterSeries


def _raster(value, shape=(2, 3)):
    return Raster({'VV': np.full(shape, value)})


def test_raster_bands_share_grid():
    with pytest.raises(ValueError):
        Raster({'VV': np.zeros((2, 2)), 'VH': np.zeros((3, 2))})
    with pytest.raises(ValueError):
        Raster({'VV': np.zeros(4)})


def test_raster_is_read_only_copy():
    data = np.ones((2, 2))
    raster = Raster({'VV': data})
    data[0, 0] = 5.0
    assert raster['VV'][0, 0] == 1.0
    with pytest.raises(ValueError):
        raster['VV'][0, 0] = 3.0


def test_add_bands_and_select():
    raster = _raster(1.0)
    added = raster.add_bands({'VH': np.zeros((2, 3))})
    assert added.band_names == ['VV', 'VH']
    assert raster.band_names == ['VV']
    assert added.select('VH').band_names == ['VH']
    with pytest.raises(ValueError):
        added.add_bands({'VV': np.zeros((2, 3))}, overwrite=False)
    replaced = added.add_bands({'VV': np.full((2, 3), 7.0)})
    assert replaced['VV'][0, 0] == 7.0


def test_series_sorted_by_time():
    series = RasterSeries([('2019-03-01', _raster(3)), ('2019-01-01', _raster(1)), ('2019-02-01', _raster(2))])
    assert series.timestamps == list(pd.to_datetime(['2019-01-01', '2019-02-01', '2019-03-01']))
    assert [r['VV'][0, 0] for r in series.rasters] == [1, 2, 3]


def test_series_merge_restores_order():
    a = RasterSeries([('2019-01-01', _raster(1)), ('2019-03-01', _raster(3))])
    b = RasterSeries([('2019-02-01', _raster(2))])
    merged = a.merge(b)
    assert [r['VV'][0, 0] for r in merged.rasters] == [1, 2, 3]
    assert len(a) == 2


def test_series_schema_checked():
    with pytest.raises(ValueError):
        RasterSeries([('2019-01-01', _raster(1)), ('2019-02-01', Raster({'VH': np.zeros((2, 3))}))])
    with pytest.raises(ValueError):
        RasterSeries([('2019-01-01', _raster(1)), ('2019-02-01', _raster(1, shape=(3, 3)))])


def test_series_stack_filter_and_map():
    series = RasterSeries([('2019-01-01', _raster(1)), ('2019-02-01', _raster(2)), ('2019-03-01', _raster(3))])
    assert series.stack('VV').shape == (3, 2, 3)
    assert len(series.filter_date('2019-01-15', '2019-03-01')) == 1
    doubled = series.map(lambda r: Raster({'VV': r['VV'] * 2}))
    assert doubled.timestamps == series.timestamps
    np.testing.assert_array_equal(doubled.stack('VV')[:, 0, 0], [2, 4, 6])
    rebuilt = RasterSeries.from_stacks(series.timestamps, {'VV': series.stack('VV')})
    np.testing.assert_array_equal(rebuilt.stack('VV'), series.stack('VV'))
