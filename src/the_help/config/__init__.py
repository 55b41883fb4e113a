"""Configuration — settings, logging and runtime setup."""
