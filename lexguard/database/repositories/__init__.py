"""Repositories over the relational store."""
