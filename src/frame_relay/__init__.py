"""
frame-relay
===========

Frame-distribution server for encoded camera images.

A capture thread produces JPEG chunks; a single-threaded event loop
reassembles them into frames and fans every frame out to datagram
subscribers and to a local output (stdout or a file) in one of five
framings: cat, header, mime, http, replace. Options can be changed while
running from the control socket or stdin.

Components:
    - options: option table, store, config protocol and command line
    - stream: chunk handoff and frame reassembly
    - output: framing encoder, HTTP gate and output sinks
    - server: client registry, appliers, control stream and event loop
    - capture: capture backends (fake test-pattern camera)
    - client: client mode for talking to a running server

Example:
    $ frame-relay --output - --framing mime | some-viewer
    $ frame-relay --send quality=40
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
