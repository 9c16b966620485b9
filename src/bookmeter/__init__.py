"""bookmeter: bibliographic enrichment and list synchronization for Bookmeter catalogs."""

__version__ = "0.3.0"
