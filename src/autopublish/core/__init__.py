"""Core models: job, configuration, errors, logging."""
