"""Console entrypoint, composition root, slash commands and the agent loop thread."""
