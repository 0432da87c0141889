"""TIMS memory store."""
