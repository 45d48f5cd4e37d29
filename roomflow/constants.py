"""Shared constants for roomflow workflows."""

from __future__ import annotations

INSTALLATION = "installation"
MEASUREMENT = "measurement"
OPS_STATUS = "ops_status"
INSPECTION = "inspection"
FEEDBACK = "feedback"

RESOURCE_TYPES = (INSTALLATION, MEASUREMENT, OPS_STATUS, INSPECTION, FEEDBACK)

# Review chains observed per workflow kind; overridable from configuration.
DEFAULT_STAGES: dict[str, list[str]] = {
    INSTALLATION: ["ops_review", "art_review", "business_review", "final_review"],
    MEASUREMENT: ["first_review", "final_review"],
    OPS_STATUS: ["review"],
    INSPECTION: ["review"],
    FEEDBACK: ["review"],
}

ADMIN_ROLE = "admin"

DEFAULT_PERMISSIONS: dict[str, dict[int, list[str]]] = {
    INSTALLATION: {
        0: ["ops_manager"],
        1: ["art_staff"],
        2: ["business_manager"],
        3: ["regional_director"],
    },
    MEASUREMENT: {0: ["ops_manager"], 1: ["business_manager"]},
    OPS_STATUS: {0: ["ops_manager"]},
    INSPECTION: {0: ["ops_manager"]},
    FEEDBACK: {0: ["ops_manager"]},
}

DEFAULT_CHECK_ATTEMPTS = 3
DEFAULT_CHECK_BACKOFF_BASE = 1.5
