import dataclasses

import pytest

from s1_sm.config import (DEFAULT_PARAMS, FilterConfig, FilterKind, Framework, check_params,
                          check_percentiles)
from s1_sm.exceptions import ConfigError, S1SMError


@pytest.mark.parametrize('value, kind', [
    ('GAMMA MAP', FilterKind.GAMMA_MAP),
    ('gamma_map', FilterKind.GAMMA_MAP),
    ('Refined Lee', FilterKind.REFINED_LEE),
    ('LEE SIGMA', FilterKind.LEE_SIGMA),
    (FilterKind.BOXCAR, FilterKind.BOXCAR),
])
def test_filter_kind_parse(value, kind):
    assert FilterKind.parse(value) is kind


def test_unknown_filter_kind():
    with pytest.raises(ConfigError):
        FilterKind.parse('MEDIAN')
    with pytest.raises(ConfigError):
        Framework.parse('BOTH')
    assert Framework.parse('multi') is Framework.MULTI


def test_filter_config():
    config = FilterConfig(kind='lee', framework='mono', kernel_size=5)
    assert config.kind is FilterKind.LEE
    assert config.framework is Framework.MONO
    assert config.kernel_size == 5
    assert FilterConfig(max_workers=4) == FilterConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.kernel_size = 3


def test_filter_config_from_params():
    params = dict(DEFAULT_PARAMS, SPECKLE_FILTER='BOXCAR', SPECKLE_FILTER_KERNEL_SIZE=9,
                  SPECKLE_FILTER_NR_OF_IMAGES=3, MAX_WORKERS=2)
    config = FilterConfig.from_params(params)
    assert config == FilterConfig(FilterKind.BOXCAR, Framework.MULTI, 9, 3, 5)
    assert config.max_workers == 2


def test_check_params_fills_defaults():
    params = check_params({'START_DATE': '2019-01-01', 'SCALE': None})
    assert set(params) == set(DEFAULT_PARAMS)
    assert params['START_DATE'] == '2019-01-01'
    assert params['SCALE'] == 10
    assert params['PERCENTILES'] == (5, 95)


@pytest.mark.parametrize('params', [
    {'POLARIZATION': 'HH'},
    {'ORBIT': 'SIDEWAYS'},
    {'PLATFORM_NUMBER': 'C'},
    {'FORMAT': 'AMPLITUDE'},
    {'SCALE': 0},
    {'CLOUD_THRESHOLD': 120},
    {'NDVI_INTERVAL': 0},
    {'SG_ORDER': -1},
    {'SG_ORDER': 2.5},
    {'SG_ORDER': True},
    {'NDVI_INTERVAL': 2.5},
    {'NDVI_WINDOW_DAYS': 'ten'},
    {'SAVE_ASSETS': True},
    {'PERCENTILES': (95, 5)},
    {'SPECKLE_FILTER': 'MEDIAN'},
    {'SPECKLE_FILTER_KERNEL_SIZE': 4},
    {'SPECKLE_FILTER_NR_OF_IMAGES': 0},
    {'CLIP_TO_ROI': True},
])
def test_check_params_rejects(params):
    with pytest.raises(ConfigError):
        check_params(params)


def test_check_percentiles():
    assert check_percentiles([0, 100]) == (0, 100)
    with pytest.raises(ConfigError):
        check_percentiles(5)


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)
    assert issubclass(ConfigError, S1SMError)
