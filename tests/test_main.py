"""
Entry Point Tests
=================

End-to-end tests through main().
"""

import os
import socket
import struct
import threading
import time

import cv2
import numpy as np

from frame_relay.config import CaptureConfig, LoopConfig, Settings
from frame_relay.main import main


def _settings(backend="fake"):
    return Settings(
        capture=CaptureConfig(backend=backend),
        loop=LoopConfig(liveness_timeout_seconds=2.0),
    )


def _send_when_bound(path, payload, timeout=5.0):
    """Send one datagram to path once something is listening there."""
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    deadline = time.monotonic() + timeout
    try:
        while time.monotonic() < deadline:
            try:
                sock.sendto(payload, path)
                return
            except OSError:
                time.sleep(0.02)
    finally:
        sock.close()


class TestMain:
    """Tests for startup handling and the server role."""

    def test_help(self, capsys):
        """--help prints the option list and fails."""
        assert main(["--help"], config=_settings()) == 1
        assert "--quality" in capsys.readouterr().err

    def test_unknown_option(self, capsys):
        """Unknown options print help and fail."""
        assert main(["--zoom", "3"], config=_settings()) == 1
        assert "--framing" in capsys.readouterr().err

    def test_invalid_value(self):
        """Out-of-range startup values are fatal."""
        assert main(["--quality", "150"], config=_settings()) == 1

    def test_client_and_server(self):
        """Both roles at once is fatal."""
        assert main(["--client", "--server"], config=_settings()) == 1

    def test_send_without_server(self, socket_dir):
        """--send with nobody listening is fatal."""
        path = os.path.join(socket_dir, "server")
        assert main(["--socket", path, "--send", "quit"], config=_settings()) == 1

    def test_config_file_typo(self, tmp_path):
        """Unknown keys in a config file are fatal."""
        config = tmp_path / "relay.conf"
        config.write_text("qualty=20\n")
        assert main(["--config", str(config)], config=_settings()) == 1

    def test_replace_on_stdout(self):
        """replace framing needs a file."""
        assert main(["--output", "-", "--framing", "replace"], config=_settings()) == 1

    def test_server_writes_counted_frames(self, tmp_path, socket_dir):
        """The server emits exactly --count frames and exits cleanly."""
        output = tmp_path / "frames.bin"
        status = main(
            [
                "--socket", os.path.join(socket_dir, "server"),
                "--output", str(output),
                "--framing", "header",
                "--count", "3",
                "--width", "160",
            ],
            config=_settings(),
        )
        assert status == 0

        data = output.read_bytes()
        frames = []
        while data:
            (length,) = struct.unpack(">I", data[:4])
            frames.append(data[4:4 + length])
            data = data[4 + length:]
        assert len(frames) == 3
        image = cv2.imdecode(np.frombuffer(frames[0], np.uint8), cv2.IMREAD_COLOR)
        assert image.shape == (112, 160, 3)
        assert not os.path.exists(os.path.join(socket_dir, "server"))

    def test_server_replace_framing(self, tmp_path, socket_dir):
        """replace framing leaves the latest complete JPEG."""
        output = tmp_path / "latest.jpg"
        status = main(
            [
                "--socket", os.path.join(socket_dir, "server"),
                "--output", str(output),
                "--framing", "replace",
                "--count", "2",
            ],
            config=_settings(),
        )
        assert status == 0
        assert output.read_bytes()[:2] == b"\xff\xd8"
        assert not os.path.exists(f"{output}.tmp")

    def test_quit_from_client(self, socket_dir):
        """A quit datagram stops a server with no capture."""
        path = os.path.join(socket_dir, "server")
        sender = threading.Thread(target=_send_when_bound, args=(path, b"quit"))
        sender.start()
        try:
            status = main(["--socket", path], config=_settings(backend="none"))
        finally:
            sender.join()
        assert status == 0
