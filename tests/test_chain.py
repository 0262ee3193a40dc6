"""Tests for chain building from service selections."""

import pytest

from app.scheduling.chain import build_chain
from app.scheduling.errors import InvalidChain
from app.scheduling.types import FollowUp, ServiceSelection


def _selection(service_id: str, duration: int, follow_up: FollowUp | None = None):
    return ServiceSelection(
        service_id=service_id,
        service_name=service_id.title(),
        variant_id=f"{service_id}-v",
        duration_minutes=duration,
        follow_up=follow_up,
    )


class TestSingleSelection:
    """One selected service, with or without a follow-up."""

    def test_follow_up_appended_with_wait_gap(self, haircut) -> None:
        """A declared follow-up becomes a second phase after its wait."""
        chain = build_chain([haircut])

        assert len(chain) == 2
        assert chain.phases[0].duration_minutes == 30
        assert chain.phases[0].is_follow_up is False
        assert chain.phases[1].service_name == "Color"
        assert chain.phases[1].duration_minutes == 45
        assert chain.phases[1].is_follow_up is True
        assert chain.gaps == (10, 0)

    def test_total_minutes_includes_wait(self, haircut) -> None:
        """Haircut 30 + wait 10 + Color 45 = 85 minutes elapsed."""
        assert build_chain([haircut]).total_minutes == 85

    def test_follow_up_uses_parent_service_by_default(self, haircut) -> None:
        """Without its own service the follow-up needs the parent capability."""
        chain = build_chain([haircut])
        assert chain.phases[1].service_id == "haircut"

    def test_follow_up_with_own_service(self) -> None:
        """A follow-up may require a different capability."""
        selection = _selection(
            "cut", 30, FollowUp(name="Color", wait_minutes=0, duration_minutes=20, service_id="color")
        )
        chain = build_chain([selection])
        assert chain.phases[1].service_id == "color"

    def test_no_follow_up(self) -> None:
        """Plain service yields a single phase."""
        chain = build_chain([_selection("shave", 20)])

        assert len(chain) == 1
        assert chain.gaps == (0,)
        assert chain.total_minutes == 20

    def test_follow_up_without_name_is_ignored(self) -> None:
        """A follow-up with a blank name is treated as absent."""
        chain = build_chain([_selection("cut", 30, FollowUp(name=" ", wait_minutes=5, duration_minutes=20))])
        assert len(chain) == 1

    def test_follow_up_with_zero_duration_is_ignored(self) -> None:
        """A follow-up shorter than one minute is treated as absent."""
        chain = build_chain([_selection("cut", 30, FollowUp(name="Color", wait_minutes=5, duration_minutes=0))])
        assert len(chain) == 1

    def test_negative_wait_clamps_to_zero(self) -> None:
        """Negative follow-up waits are clamped."""
        chain = build_chain([_selection("cut", 30, FollowUp(name="Color", wait_minutes=-5, duration_minutes=20))])
        assert chain.gaps == (0, 0)

    def test_gaps_rejected_for_single_selection(self, haircut) -> None:
        """Explicit gaps only make sense between selections."""
        with pytest.raises(InvalidChain):
            build_chain([haircut], gaps=[5])


class TestMultipleSelections:
    """Two or more explicitly selected services."""

    def test_follow_ups_not_inserted(self, haircut) -> None:
        """Multi-service visits never pull in follow-ups."""
        chain = build_chain([haircut, _selection("shave", 20)])

        assert [p.service_id for p in chain.phases] == ["haircut", "shave"]
        assert not any(p.is_follow_up for p in chain.phases)

    def test_default_gaps_are_zero(self) -> None:
        """Phases touch unless the caller asks otherwise."""
        chain = build_chain([_selection("cut", 30), _selection("shave", 20)])

        assert chain.gaps == (0, 0)
        assert chain.total_minutes == 50

    def test_explicit_gaps(self) -> None:
        """Caller-supplied gaps are kept and counted."""
        chain = build_chain(
            [_selection("cut", 30), _selection("shave", 20), _selection("wash", 10)],
            gaps=[5, 15],
        )

        assert chain.gaps == (5, 15, 0)
        assert chain.total_minutes == 80

    def test_wrong_gap_count_rejected(self) -> None:
        with pytest.raises(InvalidChain):
            build_chain([_selection("cut", 30), _selection("shave", 20)], gaps=[5, 5])

    def test_negative_gap_rejected(self) -> None:
        with pytest.raises(InvalidChain):
            build_chain([_selection("cut", 30), _selection("shave", 20)], gaps=[-1])


class TestInvalidInput:
    """Malformed selections are rejected immediately."""

    def test_empty_selection(self) -> None:
        """No services selected raises InvalidChain."""
        with pytest.raises(InvalidChain):
            build_chain([])

    def test_non_positive_duration(self) -> None:
        with pytest.raises(InvalidChain):
            build_chain([_selection("cut", 0)])
