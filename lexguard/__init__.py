"""LexGuard: verified generation of legal exam questions."""

__version__ = "0.1.0"
