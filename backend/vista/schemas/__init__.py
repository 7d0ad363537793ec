"""Pydantic schemas for Notion payloads, normalized blocks and the HTTP API."""
