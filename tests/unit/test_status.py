# tests/unit/test_status.py

from unittest.mock import MagicMock, call

import pytest

from file_uploader.exceptions import SlackApiError
from file_uploader.slack import SlackClient
from file_uploader.status import SignalState, StatusSignaler


@pytest.fixture
def slack() -> MagicMock:
    return MagicMock(spec=SlackClient)


@pytest.fixture
def signaler(slack) -> StatusSignaler:
    return StatusSignaler(slack, "C1", "1.1")


@pytest.mark.asyncio
async def test_success_path(signaler, slack):
    await signaler.mark_processing()
    assert signaler.state is SignalState.PROCESSING

    await signaler.mark_completed(True)

    assert signaler.state is SignalState.SUCCEEDED
    slack.add_reaction.assert_has_awaits(
        [call("C1", "1.1", "beachball"), call("C1", "1.1", "white_check_mark")]
    )
    slack.remove_reaction.assert_awaited_once_with("C1", "1.1", "beachball")


@pytest.mark.asyncio
async def test_failure_path(signaler, slack):
    await signaler.mark_processing()
    await signaler.mark_completed(False)

    assert signaler.state is SignalState.FAILED
    assert slack.add_reaction.await_args_list[-1] == call("C1", "1.1", "x")


@pytest.mark.asyncio
async def test_marker_failures_are_not_fatal(signaler, slack):
    slack.add_reaction.side_effect = SlackApiError("reactions.add", "ratelimited")
    slack.remove_reaction.side_effect = RuntimeError("network down")

    await signaler.mark_processing()
    await signaler.mark_completed(True)

    assert signaler.state is SignalState.SUCCEEDED
    assert slack.add_reaction.await_count == 2


@pytest.mark.asyncio
async def test_abort_removes_processing_and_adds_failure(signaler, slack):
    await signaler.mark_processing()
    slack.add_reaction.reset_mock()

    await signaler.abort()

    assert signaler.state is SignalState.ABORTED
    slack.remove_reaction.assert_awaited_once_with("C1", "1.1", "beachball")
    slack.add_reaction.assert_awaited_once_with("C1", "1.1", "x")


@pytest.mark.asyncio
async def test_abort_tolerates_missing_processing_marker(signaler, slack):
    slack.remove_reaction.side_effect = SlackApiError("reactions.remove", "no_reaction")
    await signaler.mark_processing()

    await signaler.abort()

    assert signaler.state is SignalState.ABORTED
    assert slack.add_reaction.await_args_list[-1] == call("C1", "1.1", "x")


@pytest.mark.asyncio
async def test_abort_from_idle_is_a_noop(signaler, slack):
    await signaler.abort()

    assert signaler.state is SignalState.IDLE
    slack.add_reaction.assert_not_awaited()
    slack.remove_reaction.assert_not_awaited()


@pytest.mark.asyncio
async def test_terminal_states_ignore_further_transitions(signaler, slack):
    await signaler.mark_processing()
    await signaler.mark_completed(True)
    slack.reset_mock()

    await signaler.abort()
    await signaler.mark_processing()
    await signaler.mark_completed(False)

    assert signaler.state is SignalState.SUCCEEDED
    slack.add_reaction.assert_not_awaited()
    slack.remove_reaction.assert_not_awaited()


@pytest.mark.asyncio
async def test_mark_completed_requires_processing(signaler, slack):
    await signaler.mark_completed(True)

    assert signaler.state is SignalState.IDLE
    slack.add_reaction.assert_not_awaited()
