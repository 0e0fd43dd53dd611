"""Pydantic data contracts shared across the pipeline."""
