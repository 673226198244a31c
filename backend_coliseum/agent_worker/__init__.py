"""
Agent worker package: background refresh of the Coliseum leaderboards.

Runs the periodic full-window recompute-and-publish loop next to the API.
"""
