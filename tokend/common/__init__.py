"""Shared infrastructure for the secrets agent."""
