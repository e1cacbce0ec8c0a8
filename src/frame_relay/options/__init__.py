"""
Options Module
==============

Runtime option table, value store and configuration protocol.

This module provides:
    - ConfigOption / OptionKind: the static option table
    - ConfigStore / OriginContext: current values and precedence rules
    - ConfigProtocolParser: line, packet, file and environment parsing
    - parse_args / format_help: the command-line surface

Example:
    from frame_relay.options import ConfigStore, ConfigProtocolParser, parse_args

    store = ConfigStore()
    parser = ConfigProtocolParser(store)
    parse_args(["--quality", "40"], parser)
    store.fill_defaults()
"""

from frame_relay.options.table import OPTIONS, ConfigOption, OptionKind, find_option
from frame_relay.options.store import ConfigStore, OriginContext
from frame_relay.options.parser import ConfigProtocolParser
from frame_relay.options.cli import format_help, parse_args


__all__ = [
    "OPTIONS",
    "ConfigOption",
    "OptionKind",
    "find_option",
    "ConfigStore",
    "OriginContext",
    "ConfigProtocolParser",
    "format_help",
    "parse_args",
]
