"""Escrita de datasets em destinos externos."""
