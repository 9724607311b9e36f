# =============================================================================
# floodguard_core/offline/attribution.py
# Rescuer ID Allocation and Rescue Attribution Rules
# =============================================================================
"""
Pure rules for rescuer ids and rescue credit.

The SyncOrchestrator decides where the results are written (remote and/or
local cache); this module only decides what they are.
"""

from __future__ import annotations
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from floodguard_core.errors import (
    AllocationError,
    InvalidRescuerError,
    InvalidTransitionError,
)
from floodguard_core.models import (
    SINCERE_TEAM_ID,
    SINCERE_TEAM_NAME,
    Rescuer,
    SOSRequest,
    SOSStatus,
)

# Three-digit ids, "100" .. "999"
RESCUER_ID_RANGE = range(100, 1000)
MAX_RANDOM_DRAWS = 50


@dataclass(frozen=True)
class AttributionResult:
    """Outcome of a rescue attribution."""
    sos: SOSRequest
    rescuer: Rescuer
    remote_confirmed: bool = False
    partial: bool = False       # SOS claimed remotely but the credit was not confirmed

    @property
    def credited_id(self) -> str:
        return self.rescuer.id


def allocate_rescuer_id(
    roster: Sequence[Rescuer],
    rng: Optional[random.Random] = None,
) -> str:
    """
    Draw a free three-digit rescuer id uniformly at random.

    Never returns the sincere pool id or an id already in `roster`.

    Raises:
        AllocationError: every id in the range is taken
    """
    rng = rng or random.Random()
    taken = {r.id for r in roster}
    taken.add(SINCERE_TEAM_ID)

    for _ in range(MAX_RANDOM_DRAWS):
        candidate = str(rng.randrange(RESCUER_ID_RANGE.start, RESCUER_ID_RANGE.stop))
        if candidate not in taken:
            return candidate

    # Dense roster: pick directly among what is left
    free = [str(n) for n in RESCUER_ID_RANGE if str(n) not in taken]
    if not free:
        raise AllocationError(
            "No rescuer ids left to allocate",
            roster_size=len(roster),
        )
    return rng.choice(free)


def make_sincere_pool() -> Rescuer:
    return Rescuer(id=SINCERE_TEAM_ID, name=SINCERE_TEAM_NAME, phone="-", rescues_count=0)


def find_rescuer(roster: Sequence[Rescuer], rescuer_id: str) -> Optional[Rescuer]:
    for rescuer in roster:
        if rescuer.id == rescuer_id:
            return rescuer
    return None


def resolve_credit_target(
    roster: Sequence[Rescuer],
    claimed_rescuer_id: Optional[str],
) -> Tuple[Rescuer, bool]:
    """
    Work out who gets credit for a rescue.

    Args:
        roster: Current rescuer roster
        claimed_rescuer_id: Id typed by the rescuer, or None/blank for an
            unattributed ("sincere") rescue

    Returns:
        (target rescuer before crediting, whether the sincere pool had to be created)

    Raises:
        InvalidRescuerError: a non-blank id was claimed that is not on the roster
    """
    claimed = (claimed_rescuer_id or "").strip()

    if claimed and claimed != SINCERE_TEAM_ID:
        target = find_rescuer(roster, claimed)
        if target is None:
            raise InvalidRescuerError(
                f"Rescuer id {claimed} is not registered",
                rescuer_id=claimed,
            )
        return target, False

    pool = find_rescuer(roster, SINCERE_TEAM_ID)
    if pool is None:
        return make_sincere_pool(), True
    return pool, False


def check_transition(sos: SOSRequest, status: SOSStatus) -> None:
    """
    Enforce ACTIVE -> {RESCUED, SAFE}.

    Raises:
        InvalidTransitionError: the request is already terminal, or the
            requested status is ACTIVE
    """
    if sos.status.is_terminal:
        raise InvalidTransitionError(
            f"SOS {sos.id} is already {sos.status.value}",
            current=sos.status.value,
            requested=status.value,
        )
    if not status.is_terminal:
        raise InvalidTransitionError(
            f"SOS {sos.id} can only move to RESCUED or SAFE",
            current=sos.status.value,
            requested=status.value,
        )


def apply_rescue(
    sos: SOSRequest,
    roster: Sequence[Rescuer],
    target: Rescuer,
) -> Tuple[SOSRequest, List[Rescuer], Rescuer]:
    """
    Apply a rescue to in-memory records.

    Returns:
        (rescued SOS, updated roster, credited rescuer)
    """
    check_transition(sos, SOSStatus.RESCUED)

    credited = target.credited()
    updated: List[Rescuer] = []
    replaced = False
    for rescuer in roster:
        if rescuer.id == target.id:
            updated.append(credited)
            replaced = True
        else:
            updated.append(rescuer)
    if not replaced:
        updated.append(credited)

    return sos.with_status(SOSStatus.RESCUED, credited.id), updated, credited
