"""Pull a remote Drive tree into a local directory."""

__version__ = "0.1.0"
