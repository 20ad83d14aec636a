"""Personal library REST service backed by a JSON file."""

__version__ = "1.0.0"
