"""
repositories/ - Data Access Layer
==================================
Storage contracts (``base``) and the PostgreSQL driver implementing them.
Repositories receive typed, already-validated input from the services and
return plain rows, counts and result sets.
"""
