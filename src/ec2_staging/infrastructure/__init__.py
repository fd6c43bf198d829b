"""Infrastructure: logging, retry and timing helpers."""
