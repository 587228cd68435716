"""
db/ - Database Layer
====================
Handles PostgreSQL connections for the storage adapters.
This layer is the lowest in the architecture; it depends only on config and utils.
"""
