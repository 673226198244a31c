"""
Backend Coliseum: engagement scoring engine for artist leaderboards.

Turns a log of Passport engagement events into time-decayed strength scores
across four DNA domains (A/T/G/C) and publishes ranked leaderboards per
domain and time window. Modular layout: scoring, aggregation, leaderboard,
database, agent worker and API server.
"""

__version__ = "0.1.0"
