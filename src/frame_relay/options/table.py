"""
Option Table
============

Static table of every runtime option frame-relay understands.

Each option is a small record carrying:
    - name / short alias used on the command line and in config lines
    - kind: what setting the option does (see OptionKind)
    - default value as a string (None if the option has no default)
    - a pydantic validator that checks a raw string value
    - whether it can be seeded from a FRAME_RELAY_<NAME> environment variable

The table is shared and immutable; current values live in ConfigStore.

Example:
    from frame_relay.options.table import find_option

    quality = find_option("quality")
    quality.validate("40")        # -> 40
    quality.validate("150")       # raises OptionValueError
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Tuple

from pydantic import AfterValidator, Field, TypeAdapter, ValidationError

from frame_relay.errors import OptionValueError


class OptionKind(str, Enum):
    """
    Discriminant selecting an option's setter and applier.

    Attributes:
        CAPTURE: Live capture property, pushed to the producer
        CAPTURE_RESTART: Capture property that requires a pipeline restart
        FRAMING: Output framing mode
        COUNT: Number of frames to emit before stopping
        QUIT: Live request to stop the server
        SETTING: Stored value consumed at startup only (paths)
        CONFIG_FILE: Path of a config file to load
        SEND: Line to forward to a running server (client mode)
        ROLE: Request to run as server or client
        HELP: Print the option listing
    """

    CAPTURE = "capture"
    CAPTURE_RESTART = "capture_restart"
    FRAMING = "framing"
    COUNT = "count"
    QUIT = "quit"
    SETTING = "setting"
    CONFIG_FILE = "config_file"
    SEND = "send"
    ROLE = "role"
    HELP = "help"


# Enumerations shown in the help text
EXPOSURE_MODES: Tuple[str, ...] = (
    "off", "auto", "night", "nightpreview", "backlight", "spotlight",
    "sports", "snow", "beach", "verylong", "fixedfps", "antishake",
    "fireworks",
)
AWB_MODES: Tuple[str, ...] = (
    "off", "auto", "sun", "cloudy", "shade", "tungsten", "fluorescent",
    "incandescent", "flash", "horizon",
)
IMAGE_EFFECTS: Tuple[str, ...] = (
    "none", "negative", "solarise", "solarize", "sketch", "denoise",
    "emboss", "oilpaint", "hatch", "gpen", "pastel", "watercolour",
    "watercolor", "film", "blur", "saturation", "colourswap", "colorswap",
    "washedout", "posterise", "posterize", "colourpoint", "colorpoint",
    "colourbalance", "colorbalance", "cartoon",
)
METERING_MODES: Tuple[str, ...] = ("average", "spot", "backlit", "matrix")
FRAMING_MODES: Tuple[str, ...] = ("cat", "header", "mime", "http", "replace")
ROTATIONS: Tuple[int, ...] = (0, 90, 180, 270)

SENSOR_MODES: Tuple[str, ...] = (
    "0   automatic selection",
    "1   1920x1080 (16:9) 1-30 fps",
    "2   2592x1944 (4:3)  1-15 fps",
    "3   2592x1944 (4:3)  0.1666-1 fps",
    "4   1296x972  (4:3)  1-42 fps, 2x2 binning",
    "5   1296x730  (16:9) 1-49 fps, 2x2 binning",
    "6   640x480   (4:3)  42.1-60 fps, 2x2 binning plus skip",
    "7   640x480   (4:3)  60.1-90 fps, 2x2 binning plus skip",
)


def _bool_text(value: bool) -> str:
    return "on" if value else "off"


def _check_colfx(value: str) -> Optional[Tuple[int, int]]:
    """Colour effect is "U:V" with both in 0..255; empty disables it."""
    if value == "":
        return None
    parts = value.split(":")
    if len(parts) != 2:
        raise ValueError("expected U:V")
    u, v = (int(p) for p in parts)
    if not (0 <= u < 256 and 0 <= v < 256):
        raise ValueError("U and V must be between 0 and 255")
    return (u, v)


def _check_roi(value: str) -> Tuple[float, float, float, float]:
    """Region of interest is "x:y:w:h" in normalised [0, 1] coordinates."""
    parts = value.split(":")
    if len(parts) != 4:
        raise ValueError("expected x:y:w:h")
    x, y, w, h = (float(p) for p in parts)
    for component in (x, y, w, h):
        if not 0.0 <= component <= 1.0:
            raise ValueError("coordinates must be between 0.0 and 1.0")
    return (x, y, w, h)


def _check_rotation(value: int) -> int:
    if value not in ROTATIONS:
        raise ValueError(f"must be one of {', '.join(str(r) for r in ROTATIONS)}")
    return value


_INT = TypeAdapter(int)
_TEXT = TypeAdapter(str)
_SWITCH = TypeAdapter(bool)
_NON_NEGATIVE = TypeAdapter(Annotated[int, Field(ge=0)])
_SIGNED_PERCENT = TypeAdapter(Annotated[int, Field(ge=-100, le=100)])
_PERCENT = TypeAdapter(Annotated[int, Field(ge=0, le=100)])


@dataclass(frozen=True)
class ConfigOption:
    """
    One entry of the option table.

    Attributes:
        name: Long option name, also the key in config lines
        short: Optional short alias (used as -short on the command line)
        kind: What the option does when set
        help: One-line description for --help
        default: Default string value, None if unset by default
        validator: pydantic adapter turning a raw string into a typed value
        formatter: Turns the typed value back into the stored string
        env: Whether FRAME_RELAY_<NAME> may seed the option
    """

    name: str
    short: Optional[str]
    kind: OptionKind
    help: str
    default: Optional[str] = None
    validator: TypeAdapter = field(default=_TEXT, repr=False, compare=False)
    formatter: Any = field(default=None, repr=False, compare=False)
    env: bool = True

    @property
    def env_key(self) -> Optional[str]:
        """Environment variable name, or None if not supported."""
        if not self.env:
            return None
        return f"FRAME_RELAY_{self.name.upper()}"

    def validate(self, raw: str) -> Any:
        """
        Convert a raw string to this option's typed value.

        Raises:
            OptionValueError: If the value is not acceptable
        """
        try:
            return self.validator.validate_python(raw)
        except ValidationError as e:
            reason = e.errors()[0].get("msg", "invalid value")
            raise OptionValueError(self.name, raw, reason) from e

    def canonical(self, raw: str) -> str:
        """Validate and return the normalised string form."""
        value = self.validate(raw)
        if self.formatter is not None:
            return self.formatter(value)
        return raw


def _option(
    name: str,
    short: Optional[str],
    kind: OptionKind,
    help: str,
    default: Optional[str] = None,
    validator: TypeAdapter = _TEXT,
    formatter: Any = None,
    env: bool = True,
) -> ConfigOption:
    return ConfigOption(
        name=name,
        short=short,
        kind=kind,
        help=help,
        default=default,
        validator=validator,
        formatter=formatter,
        env=env,
    )


_CAP = OptionKind.CAPTURE
_RESTART = OptionKind.CAPTURE_RESTART

OPTIONS: Tuple[ConfigOption, ...] = (
    _option("width", "w", _RESTART, "Set image width <size>", "320", _INT),
    _option("height", "h", _RESTART, "Set image height <size> (0 = calculate from width)", "0", _INT),
    _option("annotation", "a", _CAP, "Annotate the video frames with this text", ""),
    _option("anno_background", "ab", _CAP, "Turn on a black background behind the annotation", "off", _SWITCH, _bool_text),
    _option("sharpness", "sh", _CAP, "Set image sharpness (-100 to 100)", "0", _SIGNED_PERCENT),
    _option("contrast", "co", _CAP, "Set image contrast (-100 to 100)", "0", _SIGNED_PERCENT),
    _option("brightness", "br", _CAP, "Set image brightness (0 to 100)", "50", _PERCENT),
    _option("saturation", "sa", _CAP, "Set image saturation (-100 to 100)", "0", _SIGNED_PERCENT),
    _option("ISO", "ISO", _CAP, "Set capture ISO (100 to 800, 0 = auto)", "0",
            TypeAdapter(Annotated[int, Field(ge=0, le=800)])),
    _option("vstab", "vs", _CAP, "Turn on video stabilisation", "off", _SWITCH, _bool_text),
    _option("ev", "ev", _CAP, "Set EV compensation (-25 to 25)", "0",
            TypeAdapter(Annotated[int, Field(ge=-25, le=25)])),
    _option("exposure", "ex", _CAP, "Set exposure mode", "auto",
            TypeAdapter(Literal[EXPOSURE_MODES])),
    _option("fps", None, _RESTART, "Limit the frame rate (0 = auto)", "0",
            TypeAdapter(Annotated[float, Field(ge=0.0, le=90.0)])),
    _option("awb", "awb", _CAP, "Set Automatic White Balance (AWB) mode", "auto",
            TypeAdapter(Literal[AWB_MODES])),
    _option("imxfx", "ifx", _CAP, "Set image effect", "none",
            TypeAdapter(Literal[IMAGE_EFFECTS])),
    _option("colfx", "cfx", _CAP, "Set colour effect <U:V>", "",
            TypeAdapter(Annotated[str, AfterValidator(_check_colfx)])),
    _option("mode", "md", _RESTART, "Set sensor mode (0 to 7)", "0",
            TypeAdapter(Annotated[int, Field(ge=0, le=7)])),
    _option("metering", "mm", _CAP, "Set metering mode", "average",
            TypeAdapter(Literal[METERING_MODES])),
    _option("rotation", "rot", _CAP, "Set image rotation (0, 90, 180, 270)", "0",
            TypeAdapter(Annotated[int, AfterValidator(_check_rotation)])),
    _option("hflip", "hf", _CAP, "Set horizontal flip", "off", _SWITCH, _bool_text),
    _option("vflip", "vf", _CAP, "Set vertical flip", "off", _SWITCH, _bool_text),
    _option("roi", "roi", _CAP, "Set region of interest (x:y:w:h as normalised coordinates [0.0-1.0])", "0:0:1:1",
            TypeAdapter(Annotated[str, AfterValidator(_check_roi)])),
    _option("shutter", "ss", _CAP, "Set shutter speed in microseconds (0 = auto)", "0", _NON_NEGATIVE),
    _option("quality", "q", _CAP, "Set the JPEG quality (0-100)", "15", _PERCENT),
    _option("restart_interval", "rs", _CAP, "Set the JPEG restart interval (default of 0 for none)", "0", _NON_NEGATIVE),
    _option("socket", None, OptionKind.SETTING, "Specify the socket filename for communication", "/tmp/frame_relay_socket"),
    _option("output", "o", OptionKind.SETTING, "Specify an output filename or '-' for stdout", ""),
    _option("count", None, OptionKind.COUNT, "How many frames to capture before quitting (-1 = no limit)", "-1",
            TypeAdapter(Annotated[int, Field(ge=-1)])),

    # options that can't be overridden using environment variables
    _option("config", "c", OptionKind.CONFIG_FILE, "Specify a config file to read for options", env=False),
    _option("framing", "fr", OptionKind.FRAMING, "Specify the output framing (cat, header, mime, http, replace)", "cat",
            TypeAdapter(Literal[FRAMING_MODES]), env=False),
    _option("send", None, OptionKind.SEND, "Send this parameter to the server (e.g. --send shutter=1000)", env=False),
    _option("server", None, OptionKind.ROLE, "Run as a server", env=False),
    _option("client", None, OptionKind.ROLE, "Run as a client", env=False),
    _option("quit", None, OptionKind.QUIT, "Tell a server to quit", env=False),
    _option("help", None, OptionKind.HELP, "Print this help message", env=False),
)

_BY_NAME: Dict[str, ConfigOption] = {opt.name: opt for opt in OPTIONS}
_BY_SHORT: Dict[str, ConfigOption] = {}
for _opt in OPTIONS:
    if _opt.short is not None:
        _BY_SHORT.setdefault(_opt.short, _opt)


def find_option(name: str) -> Optional[ConfigOption]:
    """Look up an option by its exact long name."""
    return _BY_NAME.get(name)


def find_short_option(alias: str) -> Optional[ConfigOption]:
    """Look up an option by its short alias."""
    return _BY_SHORT.get(alias)
