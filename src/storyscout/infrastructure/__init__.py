"""Infrastructure adapters: storage and content extraction."""
