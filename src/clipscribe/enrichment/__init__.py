"""LLM-backed categorization and summaries."""
