"""Telegram integration: gateway, session registry, registration, auto-replies."""

from tgrelay.telegram.auto_reply import AutoReplyEngine
from tgrelay.telegram.gateway import (
    SELF_TARGET,
    HandshakeCallbacks,
    InboundMessage,
    SelfIdentity,
    TelegramGateway,
)
from tgrelay.telegram.registration import (
    UNKNOWN_IDENTITY,
    PendingRegistration,
    PendingValue,
    RegistrationCoordinator,
    RegistrationStep,
)
from tgrelay.telegram.session_registry import ManagedSession, SessionRegistry

__all__ = [
    "SELF_TARGET",
    "UNKNOWN_IDENTITY",
    "AutoReplyEngine",
    "HandshakeCallbacks",
    "InboundMessage",
    "ManagedSession",
    "PendingRegistration",
    "PendingValue",
    "RegistrationCoordinator",
    "RegistrationStep",
    "SelfIdentity",
    "SessionRegistry",
    "TelegramGateway",
]
