"""TeamPulse: activity transformation and team metrics pipeline."""

__version__ = "0.1.0"
