"""Relational store: ORM models, sessions and repositories."""
