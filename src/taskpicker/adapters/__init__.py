"""Concrete integrations behind the task picker ports."""
