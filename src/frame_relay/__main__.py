"""Allow `python -m frame_relay`."""

import sys

from frame_relay.main import main


sys.exit(main())
