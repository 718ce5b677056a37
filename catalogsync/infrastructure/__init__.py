"""Infrastructure adapters: configuration, logging, stores and HTTP clients."""
