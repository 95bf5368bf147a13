"""Spotify now-playing frame: credential slot, retrieval protocol, session."""
