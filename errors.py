"""Shared error codes and user-facing messages."""

from __future__ import annotations

CAPTURE_FAILED = "CAPTURE_FAILED"
NO_MEDIA = "NO_MEDIA"
INFERENCE_FAILED = "INFERENCE_FAILED"
AUTH_FAILED = "AUTH_FAILED"
NETWORK_ERROR = "NETWORK_ERROR"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"
VIDEO_ERROR = "VIDEO_ERROR"
DEPENDENCY_MISSING = "DEPENDENCY_MISSING"

ERROR_MESSAGES = {
    CAPTURE_FAILED: "Audio capture failed. Is SoX installed?",
    NO_MEDIA: "Nothing was recorded.",
    INFERENCE_FAILED: "No text came back from the model.",
    AUTH_FAILED: "API key is missing or invalid.",
    NETWORK_ERROR: "Network failed, please retry.",
    NO_ACTIVE_TARGET: "No active input target, result kept in clipboard.",
    VIDEO_ERROR: "Screen capture failed, continuing with audio only.",
    DEPENDENCY_MISSING: "A required helper program is not installed.",
}
