"""Pydantic document and payload models for the fieldwork service."""
