"""Tests for timeline, roster and drift generators."""

import math
import random
import threading
from datetime import date, datetime, timedelta

import pytest
from opsboard_sim.generators import (
    LOCATIONS,
    NO_METAL_DETECTED,
    SEED_MODULUS,
    MachineCard,
    MachineStatus,
    TimelineGenerator,
    create_machine_profile,
    generate_machine_list,
    generate_timeline_events,
    next_status,
    seed_for_machine,
    seeded_random,
    simulate_machine_update,
)


class FixedRandom(random.Random):
    """Random stream that always returns the same roll."""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


class SequenceRandom(random.Random):
    """Random stream that replays a fixed list of rolls."""

    def __init__(self, values):
        super().__init__(0)
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def make_card(**overrides):
    fields = dict(
        machine_id="MCH-105",
        name="Machine 06",
        status=MachineStatus.RUNNING_GOOD,
        location="Zone A",
        temperature=55.0,
        vibration=2.5,
        load=70.0,
        last_update=datetime(2025, 12, 5, 8, 0, 0),
    )
    fields.update(overrides)
    return MachineCard(**fields)


class TestSeededRandom:
    """Tests for the seeded pseudo-random function."""

    def test_values_in_unit_interval(self):
        for seed in range(-500, 500):
            value = seeded_random(seed * 7919.5)
            assert 0.0 <= value < 1.0

    def test_same_seed_same_value(self):
        assert seeded_random(1764892800000) == seeded_random(1764892800000)

    def test_different_seeds_differ(self):
        values = {seeded_random(seed) for seed in range(100)}
        assert len(values) > 90

    def test_non_finite_seed_treated_as_zero(self):
        assert seeded_random(math.inf) == seeded_random(0)
        assert seeded_random(math.nan) == seeded_random(0)

    def test_oversized_int_seed_is_reduced(self):
        value = seeded_random(10 ** 400)

        assert 0.0 <= value < 1.0
        assert value == seeded_random(10 ** 400 % SEED_MODULUS)

    def test_small_negative_seed_untouched(self):
        assert seeded_random(-5) == seeded_random(-5.0)

    def test_roughly_uniform(self):
        values = [seeded_random(seed) for seed in range(5000)]
        mean = sum(values) / len(values)
        assert 0.45 < mean < 0.55


class TestSeedForMachine:
    """Tests for machine id to seed mapping."""

    def test_digits_are_used(self):
        assert seed_for_machine("MCH-105") == 105

    def test_no_digits_is_zero(self):
        assert seed_for_machine("press") == 0
        assert seed_for_machine("") == 0

    def test_very_long_id_is_reduced(self):
        seed = seed_for_machine("MCH-" + "9" * 5000)

        assert seed == (10 ** 5000 - 1) % SEED_MODULUS
        assert 0 <= seed < SEED_MODULUS


class TestTimelineGenerator:
    """Tests for day synthesis."""

    @pytest.mark.parametrize(
        "day,seed",
        [
            (date(2025, 12, 5), 0),
            (date(2025, 12, 4), 105),
            (date(2024, 2, 29), 7),
            (date(2025, 3, 30), 123),  # DST change in Europe
            (date(2025, 11, 2), 209),  # DST change in the US
            (datetime(2025, 6, 1, 15, 42), 3),
        ],
    )
    def test_events_tile_the_day(self, day, seed):
        events = generate_timeline_events(day, seed)

        assert events
        for previous, current in zip(events, events[1:]):
            assert previous.end_time == current.start_time
        assert sum(e.duration_seconds for e in events) == 86400

        midnight = datetime.combine(events[0].start.date(), datetime.min.time())
        assert events[0].start == midnight
        assert events[-1].end == midnight + timedelta(days=1)

    def test_scenario_day_boundaries(self):
        events = generate_timeline_events(date(2025, 12, 5), 0)

        assert events[0].start_time == "2025-12-05T00:00:00"
        assert events[-1].end_time == "2025-12-06T00:00:00"

    def test_deterministic_for_same_arguments(self):
        first = generate_timeline_events(date(2025, 12, 5), 42)
        second = generate_timeline_events(date(2025, 12, 5), 42)

        def key(events):
            return [(e.start_time, e.end_time, e.status, e.duration_seconds, e.reason) for e in events]

        assert key(first) == key(second)

    def test_different_seeds_give_different_days(self):
        first = generate_timeline_events(date(2025, 12, 5), 1)
        second = generate_timeline_events(date(2025, 12, 5), 2)

        assert [e.duration_seconds for e in first] != [e.duration_seconds for e in second]

    def test_durations_within_bounds(self):
        events = generate_timeline_events(date(2025, 12, 5), 11)

        for event in events[:-1]:
            assert 5 * 60 <= event.duration_seconds <= 64 * 60
            assert event.duration_seconds % 60 == 0
        assert 0 < events[-1].duration_seconds <= 64 * 60
        assert len(events) <= 288

    def test_stopped_events_carry_reason(self):
        events = generate_timeline_events(date(2025, 12, 5), 9)

        for event in events:
            if event.status == MachineStatus.STOPPED:
                assert event.reason == NO_METAL_DETECTED
            else:
                assert event.reason is None
            assert event.status != MachineStatus.OFFLINE

    def test_stopped_threshold_varies_with_seed(self):
        assert TimelineGenerator(0).stopped_threshold == pytest.approx(0.15)
        assert TimelineGenerator(109).stopped_threshold == pytest.approx(0.24)
        assert 0.15 <= TimelineGenerator(-3).stopped_threshold <= 0.24

    def test_oversized_seed_offset_still_tiles(self):
        events = generate_timeline_events(date(2025, 12, 5), 10 ** 400)

        assert events[0].start_time == "2025-12-05T00:00:00"
        assert events[-1].end_time == "2025-12-06T00:00:00"
        assert sum(e.duration_seconds for e in events) == 86400

    def test_classify(self):
        gen = TimelineGenerator(7)

        assert gen.classify(0.0) == MachineStatus.STOPPED
        assert gen.classify(0.21) == MachineStatus.STOPPED
        assert gen.classify(0.23) == MachineStatus.RUNNING_ABNORMAL
        assert gen.classify(0.39) == MachineStatus.RUNNING_ABNORMAL
        assert gen.classify(0.40) == MachineStatus.RUNNING_GOOD
        assert gen.classify(0.99) == MachineStatus.RUNNING_GOOD

    def test_to_dict(self):
        event = generate_timeline_events(date(2025, 12, 5), 0)[0]

        payload = event.to_dict()

        assert payload["start_time"] == "2025-12-05T00:00:00"
        assert payload["status"] in {s.value for s in MachineStatus}
        assert len(payload["id"]) == 9


class TestGenerateMachineList:
    """Tests for roster generation."""

    def test_count_and_ids(self):
        machines = generate_machine_list(25, rng=random.Random(1))

        assert len(machines) == 25
        assert machines[0].machine_id == "MCH-100"
        assert machines[0].name == "Machine 01"
        assert machines[24].machine_id == "MCH-124"
        assert machines[24].name == "Machine 25"

    def test_baseline_ranges(self):
        for machine in generate_machine_list(200, rng=random.Random(2)):
            assert 40 <= machine.temperature <= 70
            assert 0 <= machine.vibration <= 5
            assert 50 <= machine.load <= 90
            assert machine.location in LOCATIONS

    def test_good_status_weighted_double(self):
        machines = generate_machine_list(5000, rng=random.Random(3))
        good = sum(1 for m in machines if m.status == MachineStatus.RUNNING_GOOD)
        offline = sum(1 for m in machines if m.status == MachineStatus.OFFLINE)

        assert 1.6 < good / offline < 2.4

    def test_empty_roster(self):
        assert generate_machine_list(0) == []
        assert generate_machine_list(-3) == []


class TestSimulateMachineUpdate:
    """Tests for per-tick drift."""

    def test_metrics_stay_in_range(self):
        rng = random.Random(4)
        machine = make_card()

        for _ in range(5000):
            machine = simulate_machine_update(machine, rng=rng)
            assert 20 <= machine.temperature <= 100
            assert 0 <= machine.vibration <= 10
            assert 0 <= machine.load <= 100

    def test_clamps_at_bounds(self):
        machine = make_card(temperature=100.0, vibration=10.0, load=100.0)

        updated = simulate_machine_update(machine, rng=FixedRandom(0.999))

        assert updated.temperature == 100.0
        assert updated.vibration == 10.0
        assert updated.load == 100.0

    def test_drift_is_bounded(self):
        machine = make_card()

        updated = simulate_machine_update(machine, rng=random.Random(5))

        assert abs(updated.temperature - machine.temperature) <= 0.75
        assert abs(updated.vibration - machine.vibration) <= 0.1
        assert abs(updated.load - machine.load) <= 1.0

    def test_returns_new_card_and_updates_timestamp(self):
        machine = make_card()
        now = datetime(2025, 12, 5, 9, 0, 0)

        updated = simulate_machine_update(machine, rng=random.Random(6), now=now)

        assert updated is not machine
        assert updated.last_update == now
        assert machine.last_update == datetime(2025, 12, 5, 8, 0, 0)


class TestNextStatus:
    """Tests for the status transition rolls."""

    def test_no_attempt_keeps_status(self):
        assert next_status(MachineStatus.RUNNING_GOOD, FixedRandom(0.5)) == MachineStatus.RUNNING_GOOD

    def test_good_to_abnormal(self):
        assert next_status(MachineStatus.RUNNING_GOOD, FixedRandom(0.0)) == MachineStatus.RUNNING_ABNORMAL

    def test_abnormal_recovers(self):
        rng = SequenceRandom([0.01, 0.1])
        assert next_status(MachineStatus.RUNNING_ABNORMAL, rng) == MachineStatus.RUNNING_GOOD

    def test_abnormal_falls_through_to_stopped(self):
        rng = SequenceRandom([0.01, 0.5, 0.05])
        assert next_status(MachineStatus.RUNNING_ABNORMAL, rng) == MachineStatus.STOPPED

    def test_abnormal_stays_when_both_rolls_fail(self):
        rng = SequenceRandom([0.01, 0.5, 0.5])
        assert next_status(MachineStatus.RUNNING_ABNORMAL, rng) == MachineStatus.RUNNING_ABNORMAL

    def test_stopped_restarts(self):
        rng = SequenceRandom([0.01, 0.1])
        assert next_status(MachineStatus.STOPPED, rng) == MachineStatus.RUNNING_GOOD

    def test_offline_is_never_left(self):
        assert next_status(MachineStatus.OFFLINE, FixedRandom(0.0)) == MachineStatus.OFFLINE


class TestMachineProfile:
    """Tests for the selected machine's profile."""

    def test_profile_is_stable_per_machine(self):
        machine = make_card()
        today = generate_timeline_events(date(2025, 12, 5), 205)

        first = create_machine_profile(machine, today)
        second = create_machine_profile(machine, today)

        assert first.ip == second.ip
        assert first.mac == second.mac
        assert first.serial == first.mac.replace(":", "").upper()

    def test_profile_counts_runtime(self):
        machine = make_card(status=MachineStatus.STOPPED)
        today = generate_timeline_events(date(2025, 12, 5), 205)
        running = sum(
            e.duration_seconds
            for e in today
            if e.status in (MachineStatus.RUNNING_GOOD, MachineStatus.RUNNING_ABNORMAL)
        )

        profile = create_machine_profile(machine, today)

        assert profile.total_logs_today == len(today)
        assert profile.runtime_today_minutes == int(running // 60)
        assert profile.current_status == MachineStatus.STOPPED
        assert profile.to_meta_dict()["current_status"] == "Stopped"

    def test_profile_without_events(self):
        profile = create_machine_profile(make_card(), [])

        assert profile.last_log == "--:--"
        assert profile.runtime_today_minutes == 0

    def test_concurrent_profiles_keep_their_identity(self):
        cards = [make_card(machine_id="MCH-100"), make_card(machine_id="MCH-101")]
        expected = {}
        for card in cards:
            profile = create_machine_profile(card, [])
            expected[card.machine_id] = (profile.ip, profile.mac)
        mismatched = []

        def build(card):
            for _ in range(1000):
                profile = create_machine_profile(card, [])
                if (profile.ip, profile.mac) != expected[card.machine_id]:
                    mismatched.append(card.machine_id)
                    return

        threads = [threading.Thread(target=build, args=(card,)) for card in cards]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert mismatched == []
