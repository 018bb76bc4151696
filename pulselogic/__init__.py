"""PulseLogic: Garmin Connect authentication and health data API."""

__version__ = "0.1.0"
