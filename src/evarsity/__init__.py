"""Academic lifecycle engine for the E-Varsity platform."""

__version__ = "0.1.0"
