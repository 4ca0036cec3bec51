"""Adapters de I/O (colaboradores externos)."""
