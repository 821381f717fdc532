"""User location tracking: current positions, nearby search, and a location history service with travelled distance."""

__version__ = "0.1.0"