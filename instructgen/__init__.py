"""Generate AI coding assistant instruction files from baselines and organization guidelines."""

__version__ = "1.0.0"
