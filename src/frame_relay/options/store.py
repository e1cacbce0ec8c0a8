"""
Config Store
============

Current value of every option, plus the origin-context rules that decide
whether a new value replaces an old one.

Origin Contexts:
    COMMAND_LINE   - process arguments (and FRAME_RELAY_* environment)
    CONFIG_FILE    - lines from a --config file (lowest priority)
    CLIENT_REQUEST - live request from the control socket or stdin
    PROCESS_START  - the one-time startup batch apply

Precedence:
    Command-line and client values always replace. Config-file values only
    fill options that are still unset. Defaults fill whatever is left.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from frame_relay.options.table import OPTIONS, ConfigOption, OptionKind


logger = logging.getLogger(__name__)


class OriginContext(str, Enum):
    """Where a configuration mutation came from."""

    COMMAND_LINE = "command_line"
    CONFIG_FILE = "config_file"
    CLIENT_REQUEST = "client_request"
    PROCESS_START = "process_start"

    @property
    def replaces(self) -> bool:
        """Whether a value from this context overrides an existing one."""
        return self is not OriginContext.CONFIG_FILE

    @property
    def applies_immediately(self) -> bool:
        """Whether setting a value also triggers its side effect."""
        return self in (OriginContext.CLIENT_REQUEST, OriginContext.PROCESS_START)

    @property
    def fatal_on_error(self) -> bool:
        """Whether a rejected value ends the process."""
        return self is not OriginContext.CLIENT_REQUEST


class ConfigStore:
    """
    Mapping from option name to current string value.

    Values are validated on the way in, so everything stored is known to
    be acceptable to the option's validator.

    Example:
        store = ConfigStore()
        store.set(find_option("quality"), "40", OriginContext.COMMAND_LINE)
        store.fill_defaults()
        store.typed("quality")  # -> 40
    """

    def __init__(self, options=OPTIONS) -> None:
        self._options: Dict[str, ConfigOption] = {opt.name: opt for opt in options}
        self._values: Dict[str, str] = {}
        self._sendlist: List[str] = []

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    @property
    def sendlist(self) -> List[str]:
        """Lines queued with --send, in the order given."""
        return list(self._sendlist)

    def option(self, name: str) -> ConfigOption:
        """Return the table entry for an option name."""
        return self._options[name]

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Current string value, or default if unset."""
        return self._values.get(name, default)

    def typed(self, name: str) -> Any:
        """Current value converted by the option's validator."""
        option = self._options[name]
        raw = self._values.get(name, option.default)
        if raw is None:
            return None
        return option.validate(raw)

    def is_on(self, name: str) -> bool:
        """Whether a flag-style option is set to "on"."""
        return self._values.get(name) == "on"

    def set(self, option: ConfigOption, value: str, context: OriginContext) -> bool:
        """
        Record a value subject to the replace-or-preserve rule.

        Args:
            option: Option being set
            value: Raw string value
            context: Where the value came from

        Returns:
            True if the stored value changed, False if it was preserved.

        Raises:
            OptionValueError: If the value fails validation
        """
        if option.name in self._values and not context.replaces:
            logger.debug(
                f"Keeping {option.name}={self._values[option.name]!r}, "
                f"ignoring {context.value} value {value!r}"
            )
            return False

        canonical = option.canonical(value)
        self._values[option.name] = canonical
        return True

    def restore(self, name: str, previous: Optional[str]) -> None:
        """Put back a value captured before a rejected update."""
        if previous is None:
            self._values.pop(name, None)
        else:
            self._values[name] = previous

    def add_send(self, line: str) -> None:
        """Append a line to the client send list."""
        self._sendlist.append(line)

    def fill_defaults(self) -> None:
        """Give every still-unset option its default value."""
        for name, option in self._options.items():
            if name not in self._values and option.default is not None:
                self._values[name] = option.default

    def snapshot(self) -> Dict[str, str]:
        """Copy of all current values."""
        return dict(self._values)

    def capture_properties(self) -> Dict[str, Any]:
        """Typed values of every option the capture collaborator consumes."""
        return {
            name: self.typed(name)
            for name, option in self._options.items()
            if option.kind in (OptionKind.CAPTURE, OptionKind.CAPTURE_RESTART)
        }
