"""Domain layer for the task picker."""
