"""Domain layer: curriculum structure and rich progress/reward models."""
