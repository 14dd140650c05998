"""LifeAgent: typed blocks, hybrid retrieval and a tool-driven agent loop."""

__version__ = "0.1.0"
