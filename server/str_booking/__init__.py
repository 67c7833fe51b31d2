"""Direct booking service for short-term rentals."""

__version__ = "1.0.0"
