# =============================================================================
# tests/unit/test_attribution.py
# Unit Tests for Rescuer ID Allocation and Attribution Rules
# =============================================================================

import random

import pytest

from floodguard_core.errors import AllocationError, InvalidRescuerError, InvalidTransitionError
from floodguard_core.models import Rescuer, SOSStatus
from floodguard_core.offline.attribution import (
    RESCUER_ID_RANGE,
    allocate_rescuer_id,
    apply_rescue,
    check_transition,
    resolve_credit_target,
)


def _roster(ids):
    return [Rescuer(id=i, name=f"R{i}") for i in ids]


class TestAllocateRescuerId:
    """Test three-digit id allocation"""

    def test_three_digit_id(self, sample_roster):
        rescuer_id = allocate_rescuer_id(sample_roster, random.Random(1))

        assert len(rescuer_id) == 3
        assert 100 <= int(rescuer_id) <= 999

    @pytest.mark.parametrize("size", [0, 10, 450, 890])
    def test_never_returns_taken_or_pool(self, size):
        rng = random.Random(size)
        taken = [str(n) for n in RESCUER_ID_RANGE][:size]
        roster = _roster(["000"] + taken)

        for _ in range(25):
            rescuer_id = allocate_rescuer_id(roster, rng)
            assert rescuer_id != "000"
            assert rescuer_id not in taken

    def test_last_free_id_is_found(self):
        free = "512"
        roster = _roster([str(n) for n in RESCUER_ID_RANGE if str(n) != free])

        assert allocate_rescuer_id(roster, random.Random(3)) == free

    def test_exhausted_space_raises(self):
        roster = _roster([str(n) for n in RESCUER_ID_RANGE])

        with pytest.raises(AllocationError) as exc_info:
            allocate_rescuer_id(roster)
        assert exc_info.value.details["roster_size"] == 900


class TestResolveCreditTarget:
    """Test who gets credited"""

    @pytest.mark.parametrize("claimed", [None, "", "   ", "000"])
    def test_blank_goes_to_pool(self, sample_roster, claimed):
        target, created = resolve_credit_target(sample_roster, claimed)

        assert target.id == "000"
        assert created is False

    def test_pool_created_when_missing(self, sample_roster):
        target, created = resolve_credit_target(sample_roster[1:], None)

        assert target.id == "000"
        assert target.rescues_count == 0
        assert created is True

    def test_known_rescuer(self, sample_roster):
        target, _ = resolve_credit_target(sample_roster, " 204 ")
        assert target.id == "204"

    def test_unknown_rescuer_rejected(self, sample_roster):
        with pytest.raises(InvalidRescuerError) as exc_info:
            resolve_credit_target(sample_roster, "999")
        assert exc_info.value.code == "ATTR_001"


class TestTransitions:
    """Test the ACTIVE -> terminal rule"""

    def test_active_to_terminal_allowed(self, sample_sos):
        check_transition(sample_sos, SOSStatus.RESCUED)
        check_transition(sample_sos, SOSStatus.SAFE)

    def test_active_to_active_rejected(self, sample_sos):
        with pytest.raises(InvalidTransitionError):
            check_transition(sample_sos, SOSStatus.ACTIVE)

    @pytest.mark.parametrize("terminal", [SOSStatus.RESCUED, SOSStatus.SAFE])
    def test_terminal_rejects_everything(self, sample_sos, terminal):
        resolved = sample_sos.with_status(terminal)
        for status in SOSStatus:
            with pytest.raises(InvalidTransitionError):
                check_transition(resolved, status)


class TestApplyRescue:
    """Test in-memory attribution"""

    def test_credits_only_target(self, sample_sos, sample_roster):
        target = sample_roster[2]
        rescued, roster, credited = apply_rescue(sample_sos, sample_roster, target)

        counts = {r.id: r.rescues_count for r in roster}
        assert counts == {"000": 42, "117": 5, "204": 9}
        assert credited.rescues_count == 9
        assert rescued.status is SOSStatus.RESCUED
        assert rescued.rescuer_id == "204"

    def test_new_pool_appended(self, sample_sos, sample_roster):
        target, _ = resolve_credit_target(sample_roster[1:], None)
        _, roster, credited = apply_rescue(sample_sos, sample_roster[1:], target)

        assert roster[-1].id == "000"
        assert credited.rescues_count == 1

    def test_already_rescued_rejected(self, sample_sos, sample_roster):
        rescued = sample_sos.with_status(SOSStatus.RESCUED, "117")
        with pytest.raises(InvalidTransitionError):
            apply_rescue(rescued, sample_roster, sample_roster[0])
