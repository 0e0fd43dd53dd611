"""Sentence-transformers query embeddings."""
