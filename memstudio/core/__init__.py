"""
Canonical record store, cursor pagination and the hybrid retrieval core.
"""
