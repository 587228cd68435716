"""
models/ - Domain Layer
======================
Plain data structures shared by every layer: parameter values,
result containers and the records returned to callers.
"""
