"""Building blocks for an overlay mesh network node: timer wheels, hole punching settings and remote address lists."""

__version__ = "0.1.0"