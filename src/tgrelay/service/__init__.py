"""Service layer."""

from tgrelay.service.relay import RelayService

__all__ = ["RelayService"]
