"""Infrastructure layer: audit delivery, configuration and logging."""
