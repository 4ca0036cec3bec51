"""Transformações entre datasets do registry (join, filter)."""
