"""HTTP surface over the imaging pipeline."""
