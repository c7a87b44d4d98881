# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for PipelineTimer stage tracking."""

from __future__ import annotations

from unittest.mock import patch

from gnews_resolver.pipeline_timer import PipelineTimer


def _clock(*values_ms: float):
    """monotonic_ns side effect returning the given millisecond marks."""
    return patch(
        "gnews_resolver.pipeline_timer.time.monotonic_ns",
        side_effect=[int(v * 1e6) for v in values_ms],
    )


class TestPipelineTimer:
    def test_no_stages(self):
        timer = PipelineTimer()
        assert timer.current_stage is None
        assert timer.elapsed_per_stage() == {}
        assert timer.slowest_stage() is None

    def test_stage_transitions(self):
        with _clock(0, 0, 100, 350, 350):
            timer = PipelineTimer()
            timer.stage("navigation")
            timer.stage("settle")
            assert timer.current_stage == "settle"
            timer.finalize()
            assert timer.current_stage is None
            assert timer.elapsed_per_stage() == {"navigation": 100.0, "settle": 250.0}

    def test_repeated_stage_accumulates(self):
        with _clock(0, 0, 10, 20, 50, 50):
            timer = PipelineTimer()
            timer.stage("anchors")
            timer.stage("click")
            timer.stage("anchors")
            timer.finalize()
            assert timer.elapsed_per_stage() == {"anchors": 40.0, "click": 10.0}

    def test_slowest_stage(self):
        with _clock(0, 0, 10, 500, 500, 500):
            timer = PipelineTimer()
            timer.stage("navigation")
            timer.stage("settle")
            timer.finalize()
            assert timer.slowest_stage() == "settle"

    def test_current_stage_counted_while_open(self):
        with _clock(0, 0, 75):
            timer = PipelineTimer()
            timer.stage("navigation")
            assert timer.elapsed_per_stage() == {"navigation": 75.0}

    def test_total_ms(self):
        with _clock(1000, 1500):
            timer = PipelineTimer()
            assert timer.total_ms() == 500.0

    def test_finalize_twice_is_noop(self):
        timer = PipelineTimer()
        timer.stage("click")
        timer.finalize()
        timer.finalize()
        assert list(timer.elapsed_per_stage()) == ["click"]

    def test_hints(self):
        assert "redirect" in PipelineTimer.hint_for_stage("navigation")
        assert PipelineTimer.hint_for_stage("mystery") == "Slow during 'mystery' stage."
