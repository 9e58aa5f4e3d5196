"""Momento: social-network API with a response cache and realtime fan-out."""

__version__ = "0.1.0"
