"""Validação de contratos de schema."""
