"""Lobby membership: topic pool, lobby registry and the service facade."""
