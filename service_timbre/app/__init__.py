"""
Timbre Service package for the voice platform.

This package manages timbres (TTS voice profiles bound to a TTS model) and
resolves voice display names, including user-trained voice clones. It
provides:

- app.main: API surface for timbre CRUD, name lookups and health.
- app.service: Cache-aside lookups over the store.
- app.cache: Redis-backed cache for timbre details and names.
- app.persistence: PostgreSQL repositories for timbres and voice clones.

Guidelines:
- The service is stateless; rely on external cache/DB.
- Writes invalidate the cache entries they make stale before returning.
- Not-found is an empty result, never an error.
"""
