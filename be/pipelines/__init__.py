"""Ingestion pipelines: extraction, normalization, dedup, persistence, bulk.

Each step is callable on its own so the single-file and bulk endpoints share
the exact same per-file path (see ``processing.save_candidate_from_file``).
"""
