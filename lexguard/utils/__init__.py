"""Citation handling and text utilities."""
