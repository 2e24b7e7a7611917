"""User journey funnel analytics and reminder campaign service."""

__version__ = "0.1.0"
