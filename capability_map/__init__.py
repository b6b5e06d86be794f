"""Capability Map — infers capability groups from a task hierarchy."""

__version__ = "0.1.0"
