"""Track records: one audio file per (album, track number).

Provides:
    - TrackRepository: DuckDB persistence.
    - TrackService: ownership-checked CRUD that owns the stored audio file.
"""
