"""Configuration, errors, logging and domain models."""
