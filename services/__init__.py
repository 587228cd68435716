"""
services/ - Business Logic Layer
================================
Validation, normalization and dispatch. Services never talk to a database
driver directly; they delegate to the repository abstractions.
"""
