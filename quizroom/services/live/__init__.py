"""Live session engine: in-memory game state, presence, fan-out, persistence.

This package holds the session coordination logic used by the Socket.IO
handlers, keeping transport concerns separated from game mechanics.
"""
