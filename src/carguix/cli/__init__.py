"""Command line interface for carguix."""
