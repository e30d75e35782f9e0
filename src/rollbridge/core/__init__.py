"""Core infrastructure: configuration, logging, state-root codec, persistence."""
