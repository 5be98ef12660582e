from trait_xp.core.traits import NARRATIVE_TRAITS, Trait
from trait_xp.storage.models import (
    DiscomfortLevel,
    FrictionLevel,
    MAX_SESSION_MINUTES,
    SelfReport,
    Stakes,
    StartTiming,
    TaskClassification,
    UrgeLevel,
)
from trait_xp.system.scoring import (
    base_xp_for,
    compute_trait_xp,
    count_events,
    get_multiplier,
    round_half_up,
    total_xp,
)

from tests.helpers import make_session


def by_trait(results) -> dict[Trait, int]:
    return {r.trait: r.final_xp for r in results}


def test_multiplier_bounds() -> None:
    assert get_multiplier(TaskClassification()) == 1.0
    hardest = TaskClassification(
        friction_level=FrictionLevel.HIGH,
        stakes=Stakes.HIGH,
        discomfort_level=DiscomfortLevel.HIGH,
    )
    assert get_multiplier(hardest) == 2.34


def test_multiplier_rounds_to_two_decimals() -> None:
    c = TaskClassification(friction_level=FrictionLevel.MEDIUM, stakes=Stakes.MEDIUM)
    assert get_multiplier(c) == 1.32


def test_round_half_up_is_not_bankers_rounding() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(2.49) == 2


def test_count_events_defaults_unseen_kinds_to_zero() -> None:
    session = make_session(kinds=["distraction", "urge_overcome", "distraction"])
    counts = count_events(session.events)
    assert counts["distraction"] == 2
    assert counts["urge_overcome"] == 1
    assert counts["approach_change"] == 0


def test_base_xp_is_never_negative() -> None:
    for minutes in (0, 4.9, 5, 24, 25, 61):
        assert base_xp_for(minutes) == int(minutes // 5)
    assert base_xp_for(-10) == 0


def test_scenario_default_25_minute_session() -> None:
    results = compute_trait_xp(make_session(minutes=25), TaskClassification(), 1.0)
    assert by_trait(results) == {
        Trait.INITIATIVE: 12,
        Trait.COURAGE: 15,
        Trait.DISCIPLINE: 5,
        Trait.ADAPTABILITY: 3,
        Trait.ENDURANCE: 10,
        Trait.PROACTIVENESS: 6,
        Trait.PERSEVERANCE: 9,
    }
    assert total_xp(results) == 60


def test_scenario_negative_duration_is_clamped() -> None:
    session = make_session(minutes=-10)
    assert session.duration_minutes == 0
    results = compute_trait_xp(session, TaskClassification())
    assert by_trait(results) == {
        Trait.INITIATIVE: 12,
        Trait.COURAGE: 15,
        Trait.PROACTIVENESS: 6,
    }
    assert total_xp(results) == 33


def test_results_follow_taxonomy_order_and_are_positive() -> None:
    results = compute_trait_xp(make_session(minutes=90), TaskClassification())
    order = list(Trait)
    assert [order.index(r.trait) for r in results] == sorted(order.index(r.trait) for r in results)
    assert all(isinstance(r.final_xp, int) and r.final_xp > 0 for r in results)


def test_rich_session_with_self_report() -> None:
    classification = TaskClassification(friction_level=FrictionLevel.MEDIUM)
    report = SelfReport(
        urge_level=UrgeLevel.HIGH,
        switch_unblocked=True,
        return_gap_days=3,
    )
    session = make_session(
        minutes=40,
        kinds=["urge_overcome", "approach_change", "distraction", "break"],
        report=report,
    )
    results = compute_trait_xp(session, classification)
    assert by_trait(results) == {
        Trait.INITIATIVE: 12,
        Trait.COURAGE: 18,
        Trait.DISCIPLINE: 12,
        Trait.ADAPTABILITY: 16,
        Trait.ENDURANCE: 20,
        Trait.PROACTIVENESS: 6,
        Trait.DETERMINATION: 19,
        Trait.RESILIENCE: 20,
        Trait.PERSEVERANCE: 12,
    }
    assert total_xp(results) == 135


def test_distractions_can_zero_out_discipline() -> None:
    session = make_session(minutes=10, kinds=["distraction"] * 5)
    traits = by_trait(compute_trait_xp(session, TaskClassification()))
    assert Trait.DISCIPLINE not in traits


def test_behavior_traits_ignore_multiplier() -> None:
    report = SelfReport(start_timing=StartTiming.EARLY, prompted=True, return_gap_days=9)
    session = make_session(minutes=200, report=report)
    traits = by_trait(compute_trait_xp(session, TaskClassification(), multiplier=2.34))
    assert traits[Trait.INITIATIVE] == 20
    assert traits[Trait.PROACTIVENESS] == 2
    assert traits[Trait.RESILIENCE] == 25
    assert traits[Trait.ENDURANCE] == 20


def test_resilience_tiers() -> None:
    expected = {0: None, 1: 15, 2: 15, 3: 20, 6: 20, 7: 25, 30: 25}
    for gap, xp in expected.items():
        session = make_session(report=SelfReport(return_gap_days=gap))
        traits = by_trait(compute_trait_xp(session, TaskClassification()))
        assert traits.get(Trait.RESILIENCE) == xp


def test_determination_scales_with_multiplier() -> None:
    session = make_session(report=SelfReport(urge_level=UrgeLevel.MEDIUM))
    assert by_trait(compute_trait_xp(session, TaskClassification()))[Trait.DETERMINATION] == 8
    scaled = compute_trait_xp(session, TaskClassification(), multiplier=1.5)
    assert by_trait(scaled)[Trait.DETERMINATION] == 12


def test_courage_uses_classification_additions() -> None:
    hardest = TaskClassification(
        friction_level=FrictionLevel.HIGH,
        stakes=Stakes.HIGH,
        discomfort_level=DiscomfortLevel.HIGH,
    )
    traits = by_trait(compute_trait_xp(make_session(minutes=0), hardest))
    # (12 + 12 + 12 + 6) * 2.34
    assert traits[Trait.COURAGE] == 98


def test_delayed_start_still_earns_initiative() -> None:
    session = make_session(minutes=0, report=SelfReport(start_timing=StartTiming.DELAYED))
    assert by_trait(compute_trait_xp(session, TaskClassification()))[Trait.INITIATIVE] == 6


def test_narrative_seeds_only_for_effort_traits() -> None:
    session = make_session(minutes=30, kinds=["urge_overcome", "approach_change", "approach_change"])
    results = compute_trait_xp(session, TaskClassification())
    seeds = {r.trait: r.narrative_seed for r in results}
    assert seeds[Trait.DISCIPLINE] == "Pushed through 1 urge and stayed on task."
    assert seeds[Trait.ADAPTABILITY] == "Adapted approach 2 times."
    assert seeds[Trait.PERSEVERANCE] == "Crossed a focus block."
    for trait, seed in seeds.items():
        if trait not in NARRATIVE_TRAITS:
            assert seed == ""


def test_short_session_seeds() -> None:
    results = compute_trait_xp(make_session(minutes=15), TaskClassification())
    seeds = {r.trait: r.narrative_seed for r in results}
    assert seeds[Trait.ADAPTABILITY] == "Stayed flexible."
    assert seeds[Trait.PERSEVERANCE] == "Chipped away steadily."
    assert seeds[Trait.DISCIPLINE] == "Pushed through 0 urges and stayed on task."


def test_breakdown_marks_scaled_traits() -> None:
    results = compute_trait_xp(make_session(minutes=25), TaskClassification())
    scaled = {r.trait: r.multiplier_breakdown["scaled"] for r in results}
    assert scaled[Trait.DISCIPLINE] is True
    assert scaled[Trait.INITIATIVE] is False
    assert results[0].multiplier_breakdown["multiplier"] == 1.0


def test_duration_is_bounded_to_one_day() -> None:
    assert make_session(minutes=1e300).duration_minutes == MAX_SESSION_MINUTES
    assert make_session(minutes=float("inf")).duration_minutes == 0
    assert make_session(minutes=float("nan")).duration_minutes == 0
    assert total_xp(compute_trait_xp(make_session(minutes=1e300), TaskClassification())) > 0
