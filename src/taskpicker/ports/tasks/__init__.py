"""Ports for task source integrations."""
