"""
Duplicate child detection.

A candidate is an exact duplicate of an existing child when their display
names are equal and no parent name present on both sides disagrees
(case-insensitively). Same display name with a disagreeing parent is not
blocking, it only produces a suggestion for the caller.
"""
from typing import Any, Dict, Iterable, List, Optional

from schemas import Child, clean, display_name_for

PARENT_FIELDS = ("fatherName", "motherName")


def _parents_conflict(candidate: Dict[str, Any], child: Child) -> List[str]:
    conflicts = []
    for field in PARENT_FIELDS:
        theirs = clean(getattr(child, field))
        ours = clean(candidate.get(field))
        if theirs and ours and theirs.lower() != ours.lower():
            conflicts.append(field)
    return conflicts


def detect_duplicate(
    candidate: Dict[str, Any],
    existing: Iterable[Child],
    exclude_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Compare a create/edit payload against the current children.

    Returns ``{"isDuplicate": bool}`` plus a ``message`` for exact duplicates
    or a ``suggestion`` when only the name collides.
    """
    display_name = display_name_for(candidate["name"], candidate.get("nickname"))
    collision = None
    for child in existing:
        if child.id == exclude_id or child.displayName != display_name:
            continue
        if not _parents_conflict(candidate, child):
            return {
                "isDuplicate": True,
                "message": (
                    f"A child named '{display_name}' with the same parents already exists "
                    f"(id {child.id}). Please verify before adding it again."
                ),
            }
        collision = collision or child

    if collision is not None:
        return {
            "isDuplicate": False,
            "suggestion": (
                f"Another child is also called '{display_name}' (id {collision.id}) "
                "but has different parents. Consider adding a nickname to tell them apart."
            ),
        }
    return {"isDuplicate": False}
