"""Configuration, errors, logging and resilience primitives."""
