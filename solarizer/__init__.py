"""Solarizer - imports Fronius Solar.web PV data into InfluxDB."""

__version__ = "1.0.0"
