"""
Command Line
============

Maps process arguments onto the option table.

Accepted forms:
    --name=value     --name value     --name      (bare flag means "on")
    -short value     -short           (at the end of argv means "on")

Unknown options and stray positional arguments print the help text and
exit with a failure status, like an explicit --help.
"""

import logging
from typing import List, Optional, Sequence

from frame_relay.errors import HelpRequested
from frame_relay.options.parser import ConfigProtocolParser
from frame_relay.options.store import OriginContext
from frame_relay.options.table import (
    AWB_MODES,
    EXPOSURE_MODES,
    IMAGE_EFFECTS,
    METERING_MODES,
    OPTIONS,
    SENSOR_MODES,
    ConfigOption,
    find_option,
    find_short_option,
)


logger = logging.getLogger(__name__)


def _is_long_option(arg: str) -> bool:
    return len(arg) >= 3 and arg.startswith("--")


def _is_short_option(arg: str) -> bool:
    # "-5" is a negative value, not an option
    return len(arg) >= 2 and arg[0] == "-" and arg[1] != "-" and not arg[1].isdigit()


def parse_args(argv: Sequence[str], parser: ConfigProtocolParser) -> None:
    """
    Stage command-line options into the parser's store.

    Args:
        argv: Arguments without the program name
        parser: Parser whose store receives the values

    Raises:
        HelpRequested: On --help, unknown options or stray arguments
        InvalidOptionError: On a value the option rejects
    """
    args = list(argv)
    i = 0
    while i < len(args):
        arg = args[i]
        option: Optional[ConfigOption]
        value: Optional[str] = None

        if _is_long_option(arg):
            key, sep, inline = arg[2:].partition("=")
            option = find_option(key)
            if option is None:
                logger.error(f"Unknown option '{key}'")
                raise HelpRequested()
            if sep:
                value = inline
            elif i < len(args) - 1 and not _is_long_option(args[i + 1]) \
                    and not _is_short_option(args[i + 1]):
                i += 1
                value = args[i]
        elif _is_short_option(arg):
            key = arg[1:]
            option = find_short_option(key)
            if option is None:
                logger.error(f"Unknown option '{key}'")
                raise HelpRequested()
            if i < len(args) - 1:
                i += 1
                value = args[i]
        else:
            logger.error(f"Unexpected parameter '{arg}'")
            raise HelpRequested()

        if value is None:
            # No value, so this is a boolean flag
            value = "on"

        parser.set_option(option, value, OriginContext.COMMAND_LINE)
        i += 1


def format_help(program: str = "frame-relay") -> str:
    """Build the --help text listing every option and enumeration."""
    lines: List[str] = [f"{program} [options]"]
    for opt in OPTIONS:
        if opt.short:
            lines.append(f"  --{opt.name:<15} (-{opt.short})\t {opt.help}")
        else:
            lines.append(f"  --{opt.name:<20}\t {opt.help}")

    lines.append("")
    lines.append(f"Exposure (--exposure) options: {', '.join(EXPOSURE_MODES)}")
    lines.append(f"White balance (--awb) options: {', '.join(AWB_MODES)}")
    lines.append(f"Image effect (--imxfx) options: {', '.join(IMAGE_EFFECTS)}")
    lines.append(f"Metering (--metering) options: {', '.join(METERING_MODES)}")
    lines.append("Sensor mode (--mode) options:")
    lines.extend(f"       {mode}" for mode in SENSOR_MODES)
    return "\n".join(lines) + "\n"
