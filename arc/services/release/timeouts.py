from __future__ import annotations

GH_TIMEOUT_SECONDS = 60.0
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 2.0

REGISTRY_TIMEOUT_SECONDS = 30.0
