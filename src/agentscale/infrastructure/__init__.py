"""Infrastructure adapters: storage and observability."""
