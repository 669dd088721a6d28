"""Resilient fetch layer and playback sessions for TV show front-ends."""
