"""ASGI server internals: request pipeline, negotiation, error pages."""
