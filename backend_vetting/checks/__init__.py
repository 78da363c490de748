"""Check catalog, policy and registry."""

from backend_vetting.checks.definitions import CATALOG, build_default_registry
from backend_vetting.checks.policy import DEFAULT_POLICY, VettingPolicy
from backend_vetting.checks.registry import (
    RETIRED_CHECK_NAMES,
    CheckDefinition,
    CheckRegistry,
)

__all__ = [
    "CATALOG",
    "DEFAULT_POLICY",
    "RETIRED_CHECK_NAMES",
    "CheckDefinition",
    "CheckRegistry",
    "VettingPolicy",
    "build_default_registry",
]
