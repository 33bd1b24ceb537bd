"""Feed collaborators used by the background jobs."""
