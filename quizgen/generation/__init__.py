"""Prompt building, parsing, distractors and orchestration."""
