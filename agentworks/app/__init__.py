"""Agentworks HTTP service."""
