"""Gateway services: dispatcher, normalizer and planner."""
