"""Backend package: DB models, storage, pipelines, APIs.

This package orchestrates resume ingestion: extraction, normalization,
duplicate detection, content-addressed storage and candidate persistence.
"""
