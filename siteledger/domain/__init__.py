"""Domain layer: entities and errors of the notification pipeline."""
