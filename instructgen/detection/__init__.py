"""Technology detection rules and the project detector."""

from .detector import ProjectTechnologyDetector
from .rules import (
    INDICATOR_RULES,
    ProjectTree,
    default_apply_to,
    display_name,
    evaluate_rule,
    get_rule,
)

__all__ = [
    "INDICATOR_RULES",
    "ProjectTechnologyDetector",
    "ProjectTree",
    "default_apply_to",
    "display_name",
    "evaluate_rule",
    "get_rule",
]
