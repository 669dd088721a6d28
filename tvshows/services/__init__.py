"""Fetch, catalog and playback services."""
