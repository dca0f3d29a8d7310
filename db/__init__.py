"""
db/ - Database Layer
====================
Handles the SQLite connection pool, schema migrations and the storage error taxonomy.
This layer is the lowest in the architecture and has no dependencies on other layers.
"""
