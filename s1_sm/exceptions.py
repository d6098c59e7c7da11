#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Version: v1.0
Date: 2022-07-11
Description: Exceptions raised by the S1 soil moisture processing chain
"""


class S1SMError(Exception):
    """Base exception for the s1_sm package."""
    pass


class ConfigError(S1SMError, ValueError):
    """Raised when a processing parameter is missing or not correctly defined."""
    pass


class InsufficientDataError(S1SMError):
    """Raised when a collection holds fewer images than a filter asks for."""
    pass


class GapError(S1SMError):
    """Raised when a grid date has no observation within the interpolation window."""
    pass
