"""gaslens — EVM gas attribution and storage state reconstruction."""

__version__ = "0.1.0"
