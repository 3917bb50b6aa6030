"""Immutable lead-vendor to Slack-channel routing table.

The table is loaded once from YAML and validated with Pydantic.  Lookups are
exact and case-sensitive.  A miss is an explicit :class:`NoChannelMapping`
result rather than an exception or empty string, so callers have to handle
it.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

import structlog
import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = structlog.get_logger()

DEFAULT_VENDOR_CHANNELS_PATH = Path(__file__).parent / "vendor_channels.yaml"


class ChannelRoute(BaseModel):
    """A successful vendor lookup."""

    model_config = ConfigDict(frozen=True)

    vendor: str
    channel: str


class NoChannelMapping(BaseModel):
    """A vendor lookup that found no channel."""

    model_config = ConfigDict(frozen=True)

    vendor: str | None
    reason: str


class VendorChannelsConfig(BaseModel):
    """Root of ``vendor_channels.yaml``."""

    channels: dict[str, str] = Field(default_factory=dict)

    @field_validator("channels")
    @classmethod
    def channels_not_blank(cls, v: dict[str, str]) -> dict[str, str]:
        """Reject blank vendor names or channel names."""
        for vendor, channel in v.items():
            if not vendor.strip() or not channel.strip():
                msg = f"Blank vendor or channel in mapping: {vendor!r} -> {channel!r}"
                raise ValueError(msg)
        return v


class VendorRoutingTable:
    """Many-to-one mapping of lead vendors to Slack channels.

    Args:
        channels: Vendor name to channel name.  Copied; later changes to
            the argument do not affect the table.
    """

    def __init__(self, channels: Mapping[str, str]) -> None:
        self._channels: Mapping[str, str] = MappingProxyType(dict(channels))

    @property
    def channels(self) -> Mapping[str, str]:
        """Read-only view of the mapping."""
        return self._channels

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, vendor: object) -> bool:
        return vendor in self._channels

    def resolve(self, vendor: str | None) -> ChannelRoute | NoChannelMapping:
        """Look up the channel for *vendor*.

        Args:
            vendor: Lead vendor name, matched exactly.

        Returns:
            A :class:`ChannelRoute` on a hit, else :class:`NoChannelMapping`
            describing why.
        """
        if not vendor:
            return NoChannelMapping(vendor=vendor, reason="No lead vendor specified")

        channel = self._channels.get(vendor)
        if channel is None:
            return NoChannelMapping(
                vendor=vendor,
                reason=f"No center channel mapping for vendor: {vendor}",
            )
        return ChannelRoute(vendor=vendor, channel=channel)


def load_routing_table(path: Path | None = None) -> VendorRoutingTable:
    """Load and validate the vendor routing table from YAML.

    Args:
        path: YAML file with a top-level ``channels`` mapping.  Defaults
            to the packaged ``vendor_channels.yaml``.

    Returns:
        The loaded :class:`VendorRoutingTable`.

    Raises:
        FileNotFoundError: If *path* does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If the mapping is malformed.
    """
    path = path or DEFAULT_VENDOR_CHANNELS_PATH
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    config = VendorChannelsConfig.model_validate(raw or {})
    logger.info("vendor_routing_loaded", path=str(path), vendors=len(config.channels))
    return VendorRoutingTable(config.channels)
