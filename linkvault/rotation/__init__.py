"""Link rotation and targeting."""

from linkvault.rotation.engine import (
    RotationConfig,
    RotationConfigError,
    RotationEngine,
    RotationStrategy,
    VisitorContext,
    select_link_for_rotation,
    select_link_with_targeting,
    setup_link_rotation,
)

__all__ = [
    "RotationConfig",
    "RotationConfigError",
    "RotationEngine",
    "RotationStrategy",
    "VisitorContext",
    "select_link_for_rotation",
    "select_link_with_targeting",
    "setup_link_rotation",
]
