"""
Cache package for Timbre Service.

Provides a Redis-backed cache holding timbre detail projections and
display names, keyed by entity kind and id.
"""
