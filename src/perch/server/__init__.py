"""ASGI server pipeline: request handling, negotiation, error mapping."""
