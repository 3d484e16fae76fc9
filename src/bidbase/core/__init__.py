"""Core pipeline: configuration, feed access, normalization, orchestration."""
