"""Configuration, logging and output helpers."""
