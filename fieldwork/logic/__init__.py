"""Integrity engine: respondents, sessions, surveys and submissions over a document store."""
