"""LLM-written player analysis and AFL fantasy insight lists."""
