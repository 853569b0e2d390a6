"""
Unit tests for oralexam.core.section_runner.

Covers the run-level guarantees: one record per item, rest intervals
only between sections, preambles once per group and recovery from
capture failures.
"""

import asyncio

import pytest

from conftest import (
    FakeCaptureDevice,
    FakePlayer,
    GateSleep,
    make_passage_section,
    make_plan,
    make_section,
)
from oralexam.core.phase_sequencer import PhaseSequencer
from oralexam.core.response_collector import ResponseCollector
from oralexam.core.run_cursor import RunCursor
from oralexam.core.section_runner import SectionRunner
from oralexam.models.plan import SectionKind
from oralexam.models.response import RunDiagnostics
from oralexam.models.run import RunEventType, RunPhase


def build_runner(plan, player, capture_device, sleep, rest_seconds=10):
    cursor = RunCursor(plan)
    diagnostics = RunDiagnostics()
    sequencer = PhaseSequencer(
        cursor, player, capture_device, diagnostics=diagnostics, settle_seconds=2.0, sleep=sleep
    )
    runner = SectionRunner(
        cursor,
        sequencer,
        ResponseCollector(plan),
        diagnostics=diagnostics,
        rest_seconds=rest_seconds,
        sleep=sleep,
    )
    return runner, cursor, diagnostics


class TestRun:
    """Full runs over small plans."""

    async def test_two_section_scenario(self, two_section_plan, player, capture_device, sleep):
        runner, cursor, diagnostics = build_runner(two_section_plan, player, capture_device, sleep)

        records = await runner.run()

        assert [(r.section_tag, r.item_index) for r in records] == [
            (SectionKind.SPEAKING_A, 0),
            (SectionKind.SPEAKING_A, 1),
            (SectionKind.SPEAKING_B, 0),
        ]
        assert [r.sequence for r in records] == [0, 1, 2]
        assert cursor.state.is_terminal
        assert diagnostics.rest_intervals == 1

        # The one rest sits between A[1] completing and B[0] starting
        types = [e.type for e in cursor.history]
        rest = types.index(RunEventType.REST_STARTED)
        started = [i for i, t in enumerate(types) if t == RunEventType.ITEM_STARTED]
        assert started[1] < rest < started[2]

    async def test_two_section_scenario_timing(self, two_section_plan, player, capture_device, sleep):
        runner, _, _ = build_runner(two_section_plan, player, capture_device, sleep)

        await runner.run()

        # 3 settles, prep 30+30+60, record 15+15+30, rest 10
        assert sleep.calls.count(2.0) == 3
        assert sleep.calls.count(1.0) == 30 + 30 + 60 + 15 + 15 + 30 + 10
        assert [h.max_duration_seconds for h in capture_device.handles] == [15, 15, 30]

    async def test_record_count_equals_item_count(self, player, capture_device, sleep):
        plan = make_plan(
            make_section(SectionKind.SPEAKING_A, items=2),
            make_section(SectionKind.SPEAKING_C, items=2),
            make_section(SectionKind.LISTENING_A, items=4, with_audio=True),
            make_passage_section(),
        )
        runner, cursor, _ = build_runner(plan, player, capture_device, sleep)

        records = await runner.run()

        assert len(records) == plan.total_items == 10
        assert cursor.count(RunEventType.ITEM_COMPLETED) == 10

    async def test_rest_count_is_sections_minus_one(self, player, capture_device, sleep):
        plan = make_plan(
            make_section(SectionKind.SPEAKING_A, items=3),
            make_section(SectionKind.SPEAKING_B),
            make_section(SectionKind.SPEAKING_C, items=2),
        )
        runner, cursor, diagnostics = build_runner(plan, player, capture_device, sleep)

        await runner.run()

        assert cursor.count(RunEventType.REST_STARTED) == 2
        assert diagnostics.rest_intervals == 2

    async def test_single_section_has_no_rest(self, player, capture_device, sleep):
        plan = make_plan(make_section(items=3))
        runner, cursor, _ = build_runner(plan, player, capture_device, sleep)

        await runner.run()

        assert cursor.count(RunEventType.REST_STARTED) == 0

    async def test_no_capture_during_rest(self, two_section_plan, player, capture_device, sleep):
        runner, cursor, _ = build_runner(two_section_plan, player, capture_device, sleep)
        held_while_resting = []
        cursor.subscribe(
            lambda state, event: held_while_resting.append(capture_device.active is not None)
            if state.phase == RunPhase.RESTING else None
        )

        await runner.run()

        assert held_while_resting and not any(held_while_resting)

    async def test_shared_preamble_plays_once(self, player, capture_device, sleep):
        plan = make_plan(make_passage_section(repeat=2))
        runner, _, _ = build_runner(plan, player, capture_device, sleep)

        records = await runner.run()

        assert player.played == [
            ("The library opens at nine.", "Puck"),
            ("The library opens at nine.", "Puck"),
            ("When does the library open?", None),
            ("What do you think of the opening hours?", None),
        ]
        assert [(r.item_index, r.sub_item_index) for r in records] == [(0, 0), (1, 1)]


class TestFailureRecovery:
    """Item-level failures never abort the run."""

    async def test_capture_failure_synthesizes_empty_record(self, two_section_plan, player, sleep):
        device = FakeCaptureDevice(fail_begin_on=(1,))
        runner, cursor, diagnostics = build_runner(two_section_plan, player, device, sleep)

        records = await runner.run()

        assert len(records) == 3
        assert records[1].artifact.is_empty
        assert records[1].artifact.synthesized
        assert not records[0].artifact.synthesized
        assert diagnostics.capture_failures == 1
        assert cursor.count(RunEventType.ITEM_COMPLETED) == 3
        assert device.all_released

    async def test_capture_failure_on_every_item(self, two_section_plan, player, sleep):
        device = FakeCaptureDevice(fail_stop_on=(0, 1, 2))
        runner, cursor, diagnostics = build_runner(two_section_plan, player, device, sleep)

        records = await runner.run()

        assert all(r.artifact.synthesized for r in records)
        assert diagnostics.capture_failures == 3
        assert cursor.state.is_terminal
        assert device.all_released

    async def test_playback_failures_counted(self, capture_device, sleep):
        plan = make_plan(make_section(SectionKind.LISTENING_A, items=4, with_audio=True))
        runner, _, diagnostics = build_runner(plan, FakePlayer(fail=True), capture_device, sleep)

        records = await runner.run()

        assert len(records) == 4
        assert diagnostics.playback_failures == 4


class TestAbort:
    """Cancelling the run at a suspension point."""

    async def test_abort_during_rest(self, two_section_plan, player, capture_device):
        gate = GateSleep()
        runner, cursor, _ = build_runner(two_section_plan, player, capture_device, gate)
        gate.should_block = lambda: cursor.state.phase == RunPhase.RESTING

        task = asyncio.create_task(runner.run())
        await gate.blocked.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(runner.collector) == 2
        assert capture_device.all_released

    async def test_abort_during_recording_adds_no_record(self, two_section_plan, player, capture_device):
        gate = GateSleep()
        runner, cursor, _ = build_runner(two_section_plan, player, capture_device, gate)
        gate.should_block = lambda: (
            cursor.state.phase == RunPhase.RECORDING and cursor.state.item_index == 1
        )

        task = asyncio.create_task(runner.run())
        await gate.blocked.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(runner.collector) == 1
        assert capture_device.all_released
