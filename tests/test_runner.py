"""Tests for the paced verification and post-analysis runner."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from orchestrator.engine import EngineError
from orchestrator.jobs.tracking import get_last_run
from orchestrator.verification.runner import BatchRunner, match_label


def make_engine(verify=None, post=None):
    engine = MagicMock()
    engine.verify_predictions = AsyncMock(side_effect=verify)
    engine.run_post_analysis = AsyncMock(side_effect=post)
    return engine


def verified(target_ids):
    return {
        "success": True,
        "processed": len(target_ids),
        "details": [{"fixture": target_ids[0], "teams": {"home": "Millonarios", "away": "Santa Fe"}}],
    }


class TestRunVerification:
    @pytest.mark.asyncio
    async def test_one_call_per_target_with_pacing(self):
        engine = make_engine(verify=verified)
        sleep = AsyncMock()
        runner = BatchRunner(engine, chunk_size=1, pacing_seconds=0.8, sleep=sleep)

        summary = await runner.run_verification([1, 2, 3])

        assert [c.args[0] for c in engine.verify_predictions.await_args_list] == [[1], [2], [3]]
        assert summary.processed_count == 3
        assert summary.failed_count == 0
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.8)

    @pytest.mark.asyncio
    async def test_error_on_one_item_does_not_abort(self):
        def verify(target_ids):
            if target_ids == [2]:
                raise EngineError("verify-prediction", "timeout")
            return verified(target_ids)

        runner = BatchRunner(make_engine(verify=verify), pacing_seconds=0, sleep=AsyncMock())

        summary = await runner.run_verification([1, 2, 3])

        assert summary.processed_count == 2
        assert summary.failed_count == 1
        assert summary.results[1].error is not None
        assert summary.results[1].target_ids == [2]

    @pytest.mark.asyncio
    async def test_zero_processed_is_not_success(self):
        engine = make_engine(verify=lambda ids: {"success": True, "processed": 0})
        runner = BatchRunner(engine, pacing_seconds=0)

        summary = await runner.run_verification([1])

        assert summary.processed_count == 0
        assert not summary.results[0].ok

    @pytest.mark.asyncio
    async def test_set_input_is_processed_in_order(self):
        engine = make_engine(verify=verified)
        runner = BatchRunner(engine, pacing_seconds=0)

        await runner.run_verification({30, 10, 20})

        assert [c.args[0] for c in engine.verify_predictions.await_args_list] == [[10], [20], [30]]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        engine = make_engine(verify=verified)
        summary = await BatchRunner(engine, pacing_seconds=0).run_verification([])

        assert summary.total == 0
        engine.verify_predictions.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_records_job_run(self, session_factory):
        engine = make_engine(verify=lambda ids: verified(ids) if ids == [1] else {"success": False})
        runner = BatchRunner(engine, session_factory, pacing_seconds=0)

        await runner.run_verification([1, 2])

        async with session_factory() as session:
            run = await get_last_run(session, "verification_batch")
        assert run.status == "partial"
        assert run.metrics == {"total": 2, "processed": 1, "failed": 1}


class TestRunPostAnalysis:
    @pytest.mark.asyncio
    async def test_one_call_per_target(self):
        engine = make_engine(post=lambda target_id: {"success": True})
        runner = BatchRunner(engine, pacing_seconds=0)

        summary = await runner.run_post_analysis([5, 6])

        assert [c.args[0] for c in engine.run_post_analysis.await_args_list] == [5, 6]
        assert summary.operation == "post_analysis"
        assert summary.processed_count == 2

    @pytest.mark.asyncio
    async def test_failed_response(self):
        engine = make_engine(post=lambda target_id: {"success": False, "error": "no outcome"})
        summary = await BatchRunner(engine, pacing_seconds=0).run_post_analysis([5])

        assert summary.failed_count == 1
        assert summary.to_dict()["failed_count"] == 1

    @pytest.mark.asyncio
    async def test_error_on_later_item_keeps_earlier_results(self):
        def post(target_id):
            if target_id == 6:
                raise EngineError("analyze-post-match", "timeout")
            return {"success": True}

        runner = BatchRunner(make_engine(post=post), chunk_size=3, pacing_seconds=0)

        summary = await runner.run_post_analysis([5, 6, 7])

        assert [c.args[0] for c in runner.engine.run_post_analysis.await_args_list] == [5, 6, 7]
        assert summary.processed_count == 2
        assert summary.failed_count == 1
        assert [r.ok for r in summary.results] == [True, False, True]
        assert summary.results[1].target_ids == [6]
        assert summary.results[1].error is not None


class TestMatchLabel:
    def test_with_teams(self):
        details = [{"teams": {"home": "A", "away": "B"}}]
        assert match_label(details, 1) == "A vs B"

    def test_fallback(self):
        assert match_label([], 42) == "ID: 42"
