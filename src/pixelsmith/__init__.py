"""Pixelsmith: image transformation and encoding service."""
