"""Contact mail router: relays website contact conversations over email."""

__version__ = "1.0.0"
