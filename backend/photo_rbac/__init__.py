"""Admin role grants and authorization checks for the photo-sharing platform."""

__version__ = "1.0.0"
