"""Extração de datasets externos."""
