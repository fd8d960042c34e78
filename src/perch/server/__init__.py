"""ASGI server layer: request pipeline, negotiation, and the pounce runner."""
