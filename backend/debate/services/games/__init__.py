"""Game domain services: round engine, scoring, timers and the reaper.

This package contains the framework-free game mechanics used by the HTTP
routes and socket handlers, keeping transport concerns separated from the
phase machine.
"""
