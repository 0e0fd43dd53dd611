"""Service layer: embeddings, LLM access and batch assembly."""
