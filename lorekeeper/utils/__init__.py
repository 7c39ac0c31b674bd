"""Configuration, LLM client, embedding and logging helpers."""
