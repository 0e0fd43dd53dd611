"""Corpus retrieval for generation and correction prompts."""

from .retrieval_engine import RetrievalEngine, classify_topic, technical_block

__all__ = [
    "RetrievalEngine",
    "classify_topic",
    "technical_block",
]
