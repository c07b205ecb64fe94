"""Live market dashboard data pipeline."""

__version__ = "0.1.0"
