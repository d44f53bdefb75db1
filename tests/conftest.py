"""Root pytest configuration for all tests.

This conftest applies to all test types (unit, integration).
"""

import logging

# Suppress connection-pool DEBUG chatter from requests when tests raise the
# "src" logger to DEBUG; only the backup engine's own logs are of interest.
logging.getLogger("urllib3").setLevel(logging.WARNING)
