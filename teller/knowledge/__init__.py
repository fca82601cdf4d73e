"""Document knowledge base: ingestion, indexing and retrieval."""
