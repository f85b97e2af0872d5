"""Abstract seams between the core and external systems."""
