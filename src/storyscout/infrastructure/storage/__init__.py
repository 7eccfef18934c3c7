"""Record storage."""

from .sqlite import PublicationStorage

__all__ = ["PublicationStorage"]
