"""Drive ephemeral cloud GPU/TPU/CPU runtimes from a local shell."""

__version__ = "0.1.0"
