"""Game domain services: lifecycle, ledger and end-of-game stats.

This package contains pure(ish) domain logic that should be imported by
HTTP routes, keeping transport concerns separated from core game
mechanics. Every function takes the acting User explicitly and raises
``monopay.errors`` exceptions on rejection.
"""
