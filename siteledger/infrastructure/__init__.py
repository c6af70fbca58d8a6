"""Infrastructure layer: database, record store and realtime plumbing."""
