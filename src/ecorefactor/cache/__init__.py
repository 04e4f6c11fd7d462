"""Fingerprint-keyed smell cache and the smell-id index derived from it."""
