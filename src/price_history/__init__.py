"""price-history: daily closing-price ingestion and read API."""

__version__ = "0.1.0"
