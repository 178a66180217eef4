"""Scoring domain services: handicaps, ledger, leaderboards, sidegames.

This package contains the pure(ish) scoring logic imported by the HTTP
routes and socket handlers, keeping transport concerns separated from the
ledger and leaderboard computations. ``engine.ScoringEngine`` is the only
place that mutates state.
"""
