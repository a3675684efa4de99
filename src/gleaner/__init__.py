"""gleaner: heterogeneous content ingestion and map-reduce synthesis."""

__version__ = "0.1.0"
