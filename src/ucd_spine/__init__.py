"""
ucd-spine: manifest synchronization pipeline for the Unicode Character Database.

Discovers Unicode versions upstream, crawls each version's file tree into a
per-version manifest, and ingests caller-submitted archives through a
durable, resumable upload workflow.
"""

__version__ = "0.1.0"
