"""Avatarflow - guided avatar video creation over the HeyGen API.

The package exposes a session-scoped workflow coordinator (voice, avatar,
script, summary, video), a job poller that tracks asynchronous video
generation to completion, and thin async clients for HeyGen and Field59.
"""

import logging

__version__ = "0.1.0"

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
