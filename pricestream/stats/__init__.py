"""Windowed price statistics."""
