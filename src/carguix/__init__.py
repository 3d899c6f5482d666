"""carguix: generate GNU Guix package definitions for Rust crates."""

__version__ = "0.2.0"
