"""Ledger event sources."""

from holdings_recon.sources.event_source import EventSource
from holdings_recon.sources.ledger_node import LedgerNodeSource
from holdings_recon.sources.analytical_mirror import AnalyticalMirrorSource, mirror_events_table
from holdings_recon.sources.payload import decode_event, parse_event_kind

__all__ = [
    "EventSource",
    "LedgerNodeSource",
    "AnalyticalMirrorSource",
    "mirror_events_table",
    "decode_event",
    "parse_event_kind",
]
