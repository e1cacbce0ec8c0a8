"""
Config Protocol Parser
======================

Turns configuration text from every source into ConfigStore updates.

Sources and framings:
    - config file: one "key=value" per line (parse_line / load_file)
    - datagram payloads: newline-separated lines (parse_lines)
    - stdin, text mode: newline-delimited lines split across reads (feed_lines)
    - stdin, header mode: 4-byte big-endian length + lines (parse_length_prefixed)
    - environment: FRAME_RELAY_<NAME> variables (load_environment)

Line Grammar:
    Everything after '#' is a comment. Surrounding whitespace is ignored.
    "key=value" sets a value; a bare "key" means "key=on".

Error Policy:
    A rejected option name or value is fatal when it comes from startup
    sources (command line, config file, startup batch) and is logged and
    ignored when it comes from a live client, leaving the prior value.
"""

import logging
import struct
from typing import Callable, Mapping, Optional

from frame_relay.errors import (
    ControlDesyncError,
    FatalError,
    HelpRequested,
    InvalidOptionError,
    OptionValueError,
)
from frame_relay.options.store import ConfigStore, OriginContext
from frame_relay.options.table import OPTIONS, ConfigOption, OptionKind, find_option


logger = logging.getLogger(__name__)

# Applier callback: performs the side effect of an option that was just set
Applier = Callable[[ConfigOption, OriginContext], None]

_HEADER = struct.Struct(">I")


class ConfigProtocolParser:
    """
    Parses config lines and packets into store mutations.

    Attributes:
        store: ConfigStore receiving the values
        capacity: Size of the carry-over buffers for stream input

    Example:
        parser = ConfigProtocolParser(store, applier=OptionApplier(state))
        parser.parse_line("quality=40", OriginContext.CLIENT_REQUEST)
    """

    def __init__(
        self,
        store: ConfigStore,
        applier: Optional[Applier] = None,
        capacity: int = 4096,
    ) -> None:
        """
        Initialize parser.

        Args:
            store: Store to update
            applier: Side-effect callback for live contexts
            capacity: Carry-over buffer size for stdin framings
        """
        self.store = store
        self.capacity = capacity
        self._applier = applier
        self._line_carry = bytearray()
        self._packet_carry = bytearray()
        self.config_filename: Optional[str] = None

    def set_applier(self, applier: Optional[Applier]) -> None:
        """Install the side-effect callback once server state exists."""
        self._applier = applier

    # -------------------------------------------------------------------------
    # Line grammar
    # -------------------------------------------------------------------------

    def parse_line(self, text: str, context: OriginContext) -> None:
        """
        Parse one config line.

        Args:
            text: Raw line, possibly with a trailing comment
            context: Origin of the line

        Raises:
            InvalidOptionError: Unknown key in a config file, or invalid
                value from a startup source
            HelpRequested: "help" outside of a client request
        """
        line = text.split("#", 1)[0].strip()
        if not line:
            return

        key, sep, value = line.partition("=")
        if sep:
            key = key.strip()
            value = value.strip()
        else:
            value = "on"

        option = find_option(key)
        if option is None:
            if context is OriginContext.CONFIG_FILE:
                raise InvalidOptionError(
                    f"Unknown option '{key}' in file '{self.config_filename}'"
                )
            logger.debug(f"Ignoring unknown option '{key}' ({context.value})")
            return

        self.set_option(option, value, context)

    def parse_lines(self, text: str, context: OriginContext) -> None:
        """Parse newline-separated config lines."""
        for line in text.split("\n"):
            self.parse_line(line, context)

    def set_option(self, option: ConfigOption, value: str, context: OriginContext) -> None:
        """
        Run an option's setter and, for live contexts, its applier.

        This is the single place where the origin context decides between
        failing and ignoring.
        """
        previous = self.store.get(option.name)
        try:
            changed = self._set(option, value, context)
            if changed and context.applies_immediately:
                self._apply(option, context)
        except OptionValueError as e:
            if context.fatal_on_error:
                raise InvalidOptionError(str(e)) from e
            logger.warning(f"Ignoring client request: {e}")
            self.store.restore(option.name, previous)

    def apply_all(self, context: OriginContext = OriginContext.PROCESS_START) -> None:
        """
        Apply every option once, in table order.

        Used at startup after the command line and config file have been
        staged, so initialization happens in one well-defined pass.
        """
        for option in OPTIONS:
            if option.name not in self.store:
                continue
            try:
                self._apply(option, context)
            except OptionValueError as e:
                if context.fatal_on_error:
                    raise InvalidOptionError(str(e)) from e
                logger.warning(f"Could not apply {option.name}: {e}")

    def _set(self, option: ConfigOption, value: str, context: OriginContext) -> bool:
        kind = option.kind

        if kind is OptionKind.HELP:
            if context is OriginContext.CLIENT_REQUEST:
                return False
            raise HelpRequested()

        if kind is OptionKind.SEND:
            # A client telling the server to send doesn't make sense
            if context is OriginContext.CLIENT_REQUEST:
                return False
            key = value.partition("=")[0].strip()
            if find_option(key) is None:
                raise InvalidOptionError(
                    f"Unexpected key '{key}' used in --send. Check help"
                )
            self.store.add_send(value)
            return True

        return self.store.set(option, value, context)

    def _apply(self, option: ConfigOption, context: OriginContext) -> None:
        if self._applier is not None:
            self._applier(option, context)

    # -------------------------------------------------------------------------
    # Stream framings
    # -------------------------------------------------------------------------

    def feed_lines(self, data: bytes, context: OriginContext) -> None:
        """
        Parse newline-delimited lines that may be split across reads.

        Complete lines are parsed; any trailing partial line is kept for
        the next call.

        Raises:
            FatalError: If a single line does not fit in the buffer
        """
        self._line_carry.extend(data)

        while True:
            end = self._line_carry.find(b"\n")
            if end < 0:
                break
            line = bytes(self._line_carry[:end])
            del self._line_carry[:end + 1]
            self.parse_line(line.decode("utf-8", errors="replace"), context)

        if len(self._line_carry) >= self.capacity - 1:
            raise FatalError("Line too long on control stream")

    def parse_length_prefixed(self, data: bytes, context: OriginContext) -> None:
        """
        Parse length-prefixed packets that may be split across reads.

        Each packet is a 4-byte big-endian length followed by that many
        bytes of newline-separated config lines.

        Raises:
            ControlDesyncError: If a packet declares a length that could
                never fit in the carry-over buffer
        """
        self._packet_carry.extend(data)

        while len(self._packet_carry) >= _HEADER.size:
            (length,) = _HEADER.unpack_from(self._packet_carry)
            if length > self.capacity - _HEADER.size:
                raise ControlDesyncError(
                    f"Invalid packet size {length}. Out of sync?"
                )
            end = _HEADER.size + length
            if len(self._packet_carry) < end:
                break
            payload = bytes(self._packet_carry[_HEADER.size:end])
            del self._packet_carry[:end]
            self.parse_lines(payload.decode("utf-8", errors="replace"), context)

    # -------------------------------------------------------------------------
    # Startup sources
    # -------------------------------------------------------------------------

    def load_file(self, path: str) -> None:
        """
        Read a config file with CONFIG_FILE context.

        Raises:
            InvalidOptionError: If the file cannot be read or holds a bad line
        """
        self.config_filename = path
        try:
            with open(path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            raise InvalidOptionError(f"Cannot open '{path}': {e}") from e

        logger.info(f"Loading options from: {path}")
        for line in lines:
            self.parse_line(line, OriginContext.CONFIG_FILE)

    def load_environment(self, environ: Mapping[str, str]) -> None:
        """Seed options from FRAME_RELAY_<NAME> environment variables."""
        for option in OPTIONS:
            key = option.env_key
            if key is not None and key in environ:
                logger.debug(f"{option.name} from environment ({key})")
                self.set_option(option, environ[key], OriginContext.COMMAND_LINE)
