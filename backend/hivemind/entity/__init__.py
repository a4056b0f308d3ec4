"""Entity extraction and correlation package for Hivemind.

Pattern classification, per-type normalization and validation, the
deduplicating entity store and the cross-reference index.
"""
