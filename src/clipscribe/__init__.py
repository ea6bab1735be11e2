"""clipscribe - capture, categorize and keep what you copy."""

__version__ = "0.1.0"
