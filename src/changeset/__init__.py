"""
Change-sets validados a partir de diffs o propuestas externas.
"""
from .change_set import (
    BuildResult,
    ChangeSet,
    ProposedEdit,
    VariableCreate,
    VariableUpdate,
    parse_proposal,
)
from .change_set_builder import (
    ChangeSetBuilder,
    build_change_set,
    build_change_set_from_diff,
    proposals_from_diff,
)

__all__ = [
    "BuildResult",
    "ChangeSet",
    "ProposedEdit",
    "VariableCreate",
    "VariableUpdate",
    "parse_proposal",
    "ChangeSetBuilder",
    "build_change_set",
    "build_change_set_from_diff",
    "proposals_from_diff",
]
