"""Compiler artifact ingestion."""
