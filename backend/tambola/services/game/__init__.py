"""Game domain services: tickets, calls, claims, rooms and timers.

This package contains pure(ish) domain logic that is driven by the Socket.IO
handlers and HTTP routes, keeping transport concerns separated from core game
mechanics. Only ``pool`` touches the database.
"""
