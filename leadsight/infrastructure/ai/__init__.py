"""Upstream text-generation adapters implementing TextGenerator."""
