#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Version: v1.0
Date: 2022-07-11
Description: Command line entry point.

    s1-sm s1 params.json      speckle filtered Sentinel-1 collection
    s1-sm ndvi params.json    interpolated and smoothed NDVI collection

    The JSON file holds the upper-case processing parameters. GEOMETRY is either a
    GeoJSON geometry or [lon, lat, buffer_in_metres] of the site.
"""

import argparse
import json
import logging

import ee

from . import imagery
from . import wrapper
from .config import setup_logging
from .exceptions import ConfigError

logger = logging.getLogger(__name__)


def _geometry(value):
    if isinstance(value, dict):
        return ee.Geometry(value)
    try:
        if isinstance(value, str):
            raise TypeError(value)
        lon, lat, buffer = value
    except (TypeError, ValueError):
        raise ConfigError("ERROR!!! GEOMETRY must be GeoJSON or [lon, lat, buffer], got {!r}".format(value))
    return imagery.site_footprint(lon, lat, buffer)


def build_parser():
    parser = argparse.ArgumentParser(prog='s1-sm', description='Sentinel-1 soil moisture preprocessing')
    parser.add_argument('workflow', choices=['s1', 'ndvi'], help='collection to derive')
    parser.add_argument('params', help='JSON file with the processing parameters')
    parser.add_argument('--project', default=None, help='Earth Engine cloud project')
    parser.add_argument('--log-level', default='INFO', help='logging level')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    with open(args.params, encoding='utf-8') as f:
        params = json.load(f)

    ee.Initialize(project=args.project)
    if params.get('GEOMETRY') is not None:
        params['GEOMETRY'] = _geometry(params['GEOMETRY'])

    if args.workflow == 's1':
        _, processed = wrapper.s1_preproc(params)
    else:
        _, processed = wrapper.ndvi_preproc(params)
    logger.info('%d images processed', len(processed))
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
