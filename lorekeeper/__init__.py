"""Campaign knowledge-graph extraction: chunking, LLM extraction, review and graph assembly."""

__version__ = "0.1.0"
