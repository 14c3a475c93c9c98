"""SaveAI price comparison backend."""

__version__ = "0.1.0"
