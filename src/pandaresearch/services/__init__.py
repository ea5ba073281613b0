"""Backend services: configuration and persistence."""
