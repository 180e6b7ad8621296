"""Synchronize catalog resources from a source project into a target project."""

__version__ = "0.3.0"
