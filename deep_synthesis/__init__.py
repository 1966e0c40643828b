"""Deep Synthesis: turn a research question into a literature brief."""

__version__ = "0.1.0"
