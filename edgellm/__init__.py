"""CPU inference operators and LLaMA-style self-attention built on numpy."""

__version__ = "0.1.0"