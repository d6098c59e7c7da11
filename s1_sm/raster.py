#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Version: v1.0
Date: 2022-07-11
Description: In-memory rasters and time ordered raster collections used by the
             speckle filters and the NDVI interpolation. Masked pixels are NaN.
"""

from collections import namedtuple
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np
import pandas as pd

Frame = namedtuple('Frame', ['timestamp', 'raster'])


# ---------------------------------------------------------------------------//
# Raster
# ---------------------------------------------------------------------------//

@dataclass(frozen=True, eq=False)
class Raster:
    """
    A set of co-registered 2-D bands over one footprint.

    Parameters
    ----------
    bands : mapping
        Band name to 2-D array. Arrays are copied to float64 and made read-only.

    Raises
    ------
    ValueError
        If a band is not 2-D or the bands do not share one pixel grid.

    """
    bands: object

    def __post_init__(self):
        arrays = {}
        shape = None
        for name, data in dict(self.bands).items():
            arr = np.array(data, dtype=float)
            if arr.ndim != 2:
                raise ValueError("band {} must be 2-D, got shape {}".format(name, arr.shape))
            if shape is None:
                shape = arr.shape
            elif arr.shape != shape:
                raise ValueError("band {} has shape {}, expected {}".format(name, arr.shape, shape))
            arr.setflags(write=False)
            arrays[name] = arr
        object.__setattr__(self, 'bands', MappingProxyType(arrays))

    @classmethod
    def constant(cls, value, shape, band_names):
        """A raster with every band filled with ``value``."""
        return cls({name: np.full(shape, value, dtype=float) for name in band_names})

    @property
    def band_names(self):
        return list(self.bands)

    @property
    def shape(self):
        for arr in self.bands.values():
            return arr.shape
        return None

    def __getitem__(self, name):
        return self.bands[name]

    def __contains__(self, name):
        return name in self.bands

    def select(self, names):
        if isinstance(names, str):
            names = [names]
        return Raster({name: self.bands[name] for name in names})

    def add_bands(self, other, overwrite=True):
        """
        Return a copy with the bands of ``other`` added, like ee.Image.addBands.

        Parameters
        ----------
        other : Raster or mapping
            Bands to add
        overwrite : bool
            Replace bands that already exist instead of raising

        Returns
        -------
        Raster

        """
        new = dict(other.bands if isinstance(other, Raster) else other)
        if not overwrite:
            clash = set(new) & set(self.bands)
            if clash:
                raise ValueError("bands already present: {}".format(sorted(clash)))
        merged = dict(self.bands)
        merged.update(new)
        return Raster(merged)


# ---------------------------------------------------------------------------//
# Raster series
# ---------------------------------------------------------------------------//

class RasterSeries:
    """
    Time ordered sequence of (timestamp, Raster) frames sharing one band schema
    and one pixel grid. Frames are stably sorted by timestamp on construction.
    """

    def __init__(self, frames=()):
        frames = [Frame(pd.Timestamp(t), r) for t, r in frames]
        frames.sort(key=lambda f: f.timestamp)
        if frames:
            names, shape = frames[0].raster.band_names, frames[0].raster.shape
            for frame in frames[1:]:
                if frame.raster.band_names != names:
                    raise ValueError("frame {} has bands {}, expected {}".format(
                        frame.timestamp, frame.raster.band_names, names))
                if frame.raster.shape != shape:
                    raise ValueError("frame {} has shape {}, expected {}".format(
                        frame.timestamp, frame.raster.shape, shape))
        self._frames = tuple(frames)

    @classmethod
    def from_stacks(cls, timestamps, stacks):
        """Build a series from band name -> (time, rows, cols) arrays."""
        timestamps = list(timestamps)
        frames = []
        for i, t in enumerate(timestamps):
            frames.append((t, Raster({name: stack[i] for name, stack in stacks.items()})))
        return cls(frames)

    def __len__(self):
        return len(self._frames)

    def __iter__(self):
        return iter(self._frames)

    def __getitem__(self, index):
        return self._frames[index]

    def __repr__(self):
        return 'RasterSeries(n={}, bands={})'.format(len(self), self.band_names)

    @property
    def timestamps(self):
        return [f.timestamp for f in self._frames]

    @property
    def rasters(self):
        return [f.raster for f in self._frames]

    @property
    def band_names(self):
        if not self._frames:
            return []
        return self._frames[0].raster.band_names

    @property
    def shape(self):
        if not self._frames:
            return None
        return self._frames[0].raster.shape

    def map(self, fn):
        """Apply ``fn`` to every raster, keeping the timestamps."""
        return RasterSeries((f.timestamp, fn(f.raster)) for f in self._frames)

    def merge(self, other):
        return RasterSeries(list(self._frames) + list(other))

    def select(self, bands):
        return self.map(lambda raster: raster.select(bands))

    def filter_date(self, start, end):
        """Frames with start <= timestamp < end."""
        start, end = pd.Timestamp(start), pd.Timestamp(end)
        return RasterSeries(f for f in self._frames if start <= f.timestamp < end)

    def stack(self, band):
        """Return the band as a (time, rows, cols) array."""
        return np.stack([f.raster[band] for f in self._frames])
