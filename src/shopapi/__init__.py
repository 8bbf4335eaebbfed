"""shopapi - in-memory e-commerce REST API."""

__version__ = "0.1.0"
