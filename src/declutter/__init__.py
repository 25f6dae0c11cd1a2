"""declutter - find and safely remove reclaimable disk space."""

__version__ = "0.1.0"
