"""VendorConnect scheduled jobs."""

__version__ = "0.1.0"
