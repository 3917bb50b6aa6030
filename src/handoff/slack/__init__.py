"""Slack integration: outbound event models, Block Kit builders, client, and dispatcher."""

from handoff.slack.client import SlackNotifier
from handoff.slack.dispatcher import OutboundDispatcher
from handoff.slack.models import (
    ApplicationOutcomeEvent,
    BankingFixEvent,
    BufferConnectedEvent,
    CallbackRequestEvent,
    CallDisconnectedEvent,
    CarrierRequirementFulfilledEvent,
    DispatchError,
    DispatchResult,
    LaReadyConfirmationEvent,
    OutboundEvent,
    RetentionDetails,
    SlackConfig,
    TransferEvent,
    VerificationStartedEvent,
)

__all__ = [
    "ApplicationOutcomeEvent",
    "BankingFixEvent",
    "BufferConnectedEvent",
    "CallDisconnectedEvent",
    "CallbackRequestEvent",
    "CarrierRequirementFulfilledEvent",
    "DispatchError",
    "DispatchResult",
    "LaReadyConfirmationEvent",
    "OutboundDispatcher",
    "OutboundEvent",
    "RetentionDetails",
    "SlackConfig",
    "SlackNotifier",
    "TransferEvent",
    "VerificationStartedEvent",
]
