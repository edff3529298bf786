from __future__ import annotations

# Read-only gh queries (release view, auth status)
GH_READ_TIMEOUT_SECONDS = 60.0

# Packaging a project can legitimately take a while
BUILD_TIMEOUT_SECONDS = 60 * 60.0

PLUGIN_TIMEOUT_SECONDS = 30 * 60.0
