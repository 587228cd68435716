"""
security/ - Policy Layer
========================
Gatekeeping rules applied before anything reaches storage:
the forbidden-table policy, the SQL safety validator and one-way hashing.
"""
