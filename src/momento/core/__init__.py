"""Core domain models for Momento."""
