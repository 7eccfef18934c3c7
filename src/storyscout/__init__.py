"""StoryScout - Bibliographic enrichment and press-worthiness scoring."""

__version__ = "0.1.0"

__all__ = ["__version__"]
