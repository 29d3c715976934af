"""Utility functions."""

from dansbag.utils.time import parse_iso8601_datetime, utc_now

__all__ = ["utc_now", "parse_iso8601_datetime"]
