"""Routes outbound hand-off events to Slack channels and posts them.

Vendor-routed events resolve their channel through the
:class:`~handoff.routing.table.VendorRoutingTable`; retention and portal
events go to fixed channels from :class:`~handoff.slack.models.SlackConfig`.
Each target gets exactly one ``chat.postMessage`` attempt.  Nothing here
raises: every outcome, including failures, comes back as a
:class:`~handoff.slack.models.DispatchResult` and is logged.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial

import structlog
from slack_sdk.errors import SlackApiError, SlackClientError

from handoff.observability.metrics import SLACK_DISPATCH_TOTAL
from handoff.routing.table import NoChannelMapping, VendorRoutingTable
from handoff.slack.blocks import (
    Message,
    build_application_not_submitted_blocks,
    build_application_submitted_blocks,
    build_banking_fix_blocks,
    build_buffer_connected_blocks,
    build_call_dropped_center_blocks,
    build_callback_request_blocks,
    build_carrier_requirement_blocks,
    build_disconnected_blocks,
    build_la_ready_blocks,
    build_transfer_blocks,
    build_verification_started_blocks,
)
from handoff.slack.client import SlackNotifier
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
    SlackConfig,
    TransferEvent,
    VerificationStartedEvent,
)

logger = structlog.get_logger()


class OutboundDispatcher:
    """Turns outbound events into Slack posts.

    Args:
        notifier: Slack client, or None when no bot token is configured
            (every post then reports ``service_unreachable``).
        routing: Vendor to channel mapping.
        config: Fixed channels and portal URL.
    """

    def __init__(
        self,
        notifier: SlackNotifier | None,
        routing: VendorRoutingTable,
        config: SlackConfig | None = None,
    ) -> None:
        self._notifier = notifier
        self._routing = routing
        self._config = config or SlackConfig()

    def dispatch(self, event: OutboundEvent) -> list[DispatchResult]:
        """Post *event* to every channel it routes to.

        Returns:
            One :class:`DispatchResult` per target channel, in posting order.
        """
        base_url = self._config.portal_base_url

        if isinstance(event, CallbackRequestEvent):
            return [
                self._to_vendor(
                    event.event_type, event, partial(build_callback_request_blocks, event, base_url)
                )
            ]

        if isinstance(event, CallDisconnectedEvent):
            results = [
                self._post(
                    event.event_type,
                    event.submission_id,
                    self._config.disconnected_channel,
                    partial(build_disconnected_blocks, event),
                )
            ]
            if event.dropped:
                results.append(
                    self._to_vendor(
                        "call_dropped", event, partial(build_call_dropped_center_blocks, event)
                    )
                )
            return results

        if isinstance(event, VerificationStartedEvent):
            event_type = "reconnected" if event.reconnected else event.event_type
            return [
                self._to_vendor(event_type, event, partial(build_verification_started_blocks, event))
            ]

        if isinstance(event, TransferEvent):
            return [self._to_vendor(event.event_type, event, partial(build_transfer_blocks, event))]

        if isinstance(event, BufferConnectedEvent):
            return [
                self._post(
                    event.event_type,
                    event.submission_id,
                    self._config.callback_portal_channel,
                    partial(build_buffer_connected_blocks, event, base_url),
                )
            ]

        if isinstance(event, LaReadyConfirmationEvent):
            return [
                self._post(
                    event.event_type,
                    event.submission_id,
                    self._config.callback_portal_channel,
                    partial(build_la_ready_blocks, event),
                )
            ]

        if isinstance(event, ApplicationOutcomeEvent):
            if not event.submitted:
                return [
                    self._to_vendor(
                        "application_not_submitted",
                        event,
                        partial(build_application_not_submitted_blocks, event),
                    )
                ]
            return [
                self._to_retention(
                    "application_submitted",
                    event.submission_id,
                    event.is_retention_call,
                    partial(build_application_submitted_blocks, event),
                )
            ]

        if isinstance(event, BankingFixEvent):
            return [
                self._to_retention(
                    event.event_type,
                    event.submission_id,
                    event.is_retention_call,
                    partial(build_banking_fix_blocks, event),
                )
            ]

        if isinstance(event, CarrierRequirementFulfilledEvent):
            return [
                self._to_retention(
                    event.event_type,
                    event.submission_id,
                    event.is_retention_call,
                    partial(build_carrier_requirement_blocks, event),
                )
            ]

        msg = f"Unsupported outbound event: {type(event).__name__}"
        raise TypeError(msg)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _to_vendor(
        self,
        event_type: str,
        event: CallbackRequestEvent
        | CallDisconnectedEvent
        | VerificationStartedEvent
        | TransferEvent
        | ApplicationOutcomeEvent,
        build: Callable[[], Message],
    ) -> DispatchResult:
        route = self._routing.resolve(event.lead_vendor)
        if isinstance(route, NoChannelMapping):
            logger.warning(
                "slack_dispatch_no_mapping",
                event_type=event_type,
                submission_id=event.submission_id,
                lead_vendor=event.lead_vendor,
            )
            return self._failed(
                event_type,
                event.submission_id,
                None,
                DispatchError.NO_VENDOR_MAPPING,
                route.reason,
            )
        return self._post(event_type, event.submission_id, route.channel, build)

    def _to_retention(
        self,
        event_type: str,
        submission_id: str,
        is_retention_call: bool,
        build: Callable[[], Message],
    ) -> DispatchResult:
        if not is_retention_call:
            logger.info(
                "slack_dispatch_skipped",
                event_type=event_type,
                submission_id=submission_id,
                reason="not a retention call",
            )
            SLACK_DISPATCH_TOTAL.labels(event_type=event_type, outcome=DispatchError.SKIPPED).inc()
            return DispatchResult(
                ok=False,
                event_type=event_type,
                submission_id=submission_id,
                error_code=DispatchError.SKIPPED,
                detail="Not a retention call, no notification sent",
            )
        return self._post(event_type, submission_id, self._config.retention_channel, build)

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def _post(
        self,
        event_type: str,
        submission_id: str,
        channel: str,
        build: Callable[[], Message],
    ) -> DispatchResult:
        if self._notifier is None:
            return self._failed(
                event_type,
                submission_id,
                channel,
                DispatchError.SERVICE_UNREACHABLE,
                "Slack bot token not configured",
            )

        try:
            fallback_text, blocks = build()
        except Exception as exc:
            # A malformed payload must not undo the write that triggered it.
            return self._failed(
                event_type,
                submission_id,
                channel,
                DispatchError.SERVICE_ERROR,
                f"Could not build message: {exc}",
            )

        try:
            ts = self._notifier.post_message(channel, blocks, fallback_text)
        except SlackApiError as exc:
            error = exc.response.get("error") if exc.response is not None else None
            code = (
                DispatchError.CHANNEL_NOT_FOUND
                if error == "channel_not_found"
                else DispatchError.SERVICE_ERROR
            )
            return self._failed(event_type, submission_id, channel, code, error or str(exc))
        except (SlackClientError, OSError) as exc:
            return self._failed(
                event_type,
                submission_id,
                channel,
                DispatchError.SERVICE_UNREACHABLE,
                str(exc),
            )

        SLACK_DISPATCH_TOTAL.labels(event_type=event_type, outcome="ok").inc()
        logger.info(
            "slack_dispatch_sent",
            event_type=event_type,
            submission_id=submission_id,
            channel=channel,
            message_ts=ts,
        )
        return DispatchResult(
            ok=True,
            event_type=event_type,
            submission_id=submission_id,
            channel=channel,
            message_ts=ts,
        )

    def _failed(
        self,
        event_type: str,
        submission_id: str,
        channel: str | None,
        code: DispatchError,
        detail: str,
    ) -> DispatchResult:
        SLACK_DISPATCH_TOTAL.labels(event_type=event_type, outcome=code).inc()
        if code != DispatchError.NO_VENDOR_MAPPING:
            logger.error(
                "slack_dispatch_failed",
                event_type=event_type,
                submission_id=submission_id,
                channel=channel,
                error_code=code,
                detail=detail,
            )
        return DispatchResult(
            ok=False,
            event_type=event_type,
            submission_id=submission_id,
            channel=channel,
            error_code=code,
            detail=detail,
        )
