"""
Option Appliers
===============

Side effects of options that take effect while the server runs.

The parser calls an applier after a value has been stored, for client
requests and for the one-time startup pass. Which applier runs is chosen
by the option's kind:

    CAPTURE          push the typed value to the capture source
    CAPTURE_RESTART  push the value, then restart a running capture
    FRAMING          switch the encoder's framing mode
    COUNT            reset the remaining-frame limit
    QUIT             stop the server

Other kinds are consumed at startup and have nothing to apply.
"""

import logging
from typing import Callable, Dict

from frame_relay.errors import OptionValueError
from frame_relay.options.store import OriginContext
from frame_relay.options.table import ConfigOption, OptionKind
from frame_relay.output.framing import FramingMode
from frame_relay.server.state import ServerState


logger = logging.getLogger(__name__)


class OptionApplier:
    """
    Applies stored option values to the running server.

    Installed on the parser with parser.set_applier(OptionApplier(state)).

    Raises:
        OptionValueError: When the value is valid on its own but cannot be
            used in the current state (e.g. replace framing on stdout)
    """

    def __init__(self, state: ServerState) -> None:
        self.state = state
        self._handlers: Dict[OptionKind, Callable[[ConfigOption, OriginContext], None]] = {
            OptionKind.CAPTURE: self._apply_capture,
            OptionKind.CAPTURE_RESTART: self._apply_restart,
            OptionKind.FRAMING: self._apply_framing,
            OptionKind.COUNT: self._apply_count,
            OptionKind.QUIT: self._apply_quit,
        }

    def __call__(self, option: ConfigOption, context: OriginContext) -> None:
        handler = self._handlers.get(option.kind)
        if handler is not None:
            handler(option, context)

    def _apply_capture(self, option: ConfigOption, context: OriginContext) -> None:
        self.state.capture.set_property(option.name, self.state.store.typed(option.name))

    def _apply_restart(self, option: ConfigOption, context: OriginContext) -> None:
        state = self.state
        state.capture.set_property(option.name, state.store.typed(option.name))
        if not state.capture.is_running:
            return

        # Stop first so no chunk of the old geometry reaches the new buffer
        logger.info(f"Restarting capture for {option.name}={state.store.get(option.name)}")
        state.capture.stop()
        discarded = state.handoff.discard_pending()
        if discarded:
            logger.debug(f"Discarded {discarded} chunks from before the restart")
        state.reassembler.reset()
        state.capture.start(state.handoff)

    def _apply_framing(self, option: ConfigOption, context: OriginContext) -> None:
        value = self.state.store.get(option.name)
        mode = FramingMode(value)
        if mode is FramingMode.ATOMIC_REPLACE_FILE and not self.state.sink.supports_replace:
            raise OptionValueError(
                option.name, value, f"cannot replace the contents of {self.state.sink.name}"
            )
        # Only an HTTP control stream can open the gate that http framing waits on
        if (
            mode is FramingMode.HTTP_MULTIPART
            and mode is not self.state.encoder.mode
            and not self.state.http_control
        ):
            raise OptionValueError(
                option.name, value, "http framing needs an HTTP control stream on stdin"
            )
        self.state.encoder.set_mode(mode)

    def _apply_count(self, option: ConfigOption, context: OriginContext) -> None:
        self.state.set_frame_limit(self.state.store.typed(option.name))

    def _apply_quit(self, option: ConfigOption, context: OriginContext) -> None:
        self.state.request_stop(f"quit requested ({context.value})")
