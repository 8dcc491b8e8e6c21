"""prdgen: turn a short app description into a Product Requirements Document."""

__version__ = "0.1.0"
