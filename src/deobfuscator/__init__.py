"""Batch deobfuscator for JavaScript produced by array-indirection obfuscators."""

__version__ = "1.0.0"
