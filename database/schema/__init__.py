"""Schema version definitions (vX.py)."""
