"""Business modules of the progress engine (shared, rewards, progress)."""
