"""kida integration: environment setup and the built-in page templates."""
