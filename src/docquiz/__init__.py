"""Document-to-quiz generation service."""
