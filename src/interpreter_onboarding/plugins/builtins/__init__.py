"""Built-in plugins registered by the gateway."""
