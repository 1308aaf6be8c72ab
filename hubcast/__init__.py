"""hubcast: relay GitHub activity into Discord channels."""

__version__ = "0.1.0"
