"""Plugins shipped with pollex."""
