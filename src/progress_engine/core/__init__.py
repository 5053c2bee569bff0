"""Infrastructure layer: configuration, logging, exceptions and caching."""
