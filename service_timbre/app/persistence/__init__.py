"""
Persistence package for Timbre Service.

PostgreSQL-backed repositories for timbre records and the read-only view of
voice clones owned by the voice-clone module.
"""
