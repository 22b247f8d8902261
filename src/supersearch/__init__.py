"""SuperSearch: incremental semantic search over a local document vault."""

__version__ = "0.1.0"
