"""Backend implementations."""

from szczk_store.backends._szczk import SzczkBackend

__all__ = ["SzczkBackend"]
