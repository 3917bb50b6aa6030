"""Lead-vendor to Slack-channel routing."""

from handoff.routing.table import (
    DEFAULT_VENDOR_CHANNELS_PATH,
    ChannelRoute,
    NoChannelMapping,
    VendorRoutingTable,
    load_routing_table,
)

__all__ = [
    "DEFAULT_VENDOR_CHANNELS_PATH",
    "ChannelRoute",
    "NoChannelMapping",
    "VendorRoutingTable",
    "load_routing_table",
]
