"""
API server package: HTTP interface to the Coliseum engine.

Ingests Passport events, previews mutations, triggers refreshes and serves
published leaderboards. Delegates all scoring to backend_coliseum.engine.
"""
