import pytest

from conductor.errors import StateError
from conductor.models.state import PipelineState, STAGE_ORDER, Stage, TRANSITIONS
from conductor.models.topics import DraftResult
from tests.fakes import make_topic


def _state(**kw) -> PipelineState:
    return PipelineState(practice_id="p-1", organization_id="org-1", run_id="r-1", **kw)


def test_transitions_follow_stage_order():
    for current, nxt in zip(STAGE_ORDER, STAGE_ORDER[1:]):
        assert TRANSITIONS[current] is nxt
    assert Stage.COMPLETED not in TRANSITIONS


def test_advance_walks_happy_path():
    s = _state()
    for target in STAGE_ORDER[1:]:
        s.advance(target)
    assert s.stage is Stage.COMPLETED


def test_advance_refuses_skip_and_backward_moves():
    s = _state()
    with pytest.raises(StateError):
        s.advance(Stage.SCHOLAR)
    s.advance(Stage.HEALTH_CHECK)
    with pytest.raises(StateError):
        s.advance(Stage.INIT)
    assert s.stage is Stage.HEALTH_CHECK


def test_failed_reachable_from_any_non_terminal_stage():
    for stage in STAGE_ORDER[:-1]:
        s = _state(stage=stage)
        s.advance(Stage.FAILED)
        assert s.stage is Stage.FAILED


def test_terminal_stages_cannot_move():
    for stage in (Stage.COMPLETED, Stage.FAILED):
        s = _state(stage=stage)
        with pytest.raises(StateError):
            s.advance(Stage.FAILED)


def test_snapshot_is_json_ready():
    t = make_topic("implants austin")
    s = _state(topics=[t], topic_count=1, drafts=[DraftResult.ok(0, t, "c-1")])
    snap = s.snapshot()
    assert snap["stage"] == "init"
    assert snap["topics"][0]["target_keyword"] == "implants austin"
    assert snap["drafts"][0]["content_id"] == "c-1"
    assert s.drafts_produced == 1


def test_draft_result_consistency_rules():
    t = make_topic("x")
    with pytest.raises(ValueError):
        DraftResult(position=0, topic=t, success=True)
    with pytest.raises(ValueError):
        DraftResult(position=0, topic=t, success=False)
    assert DraftResult.failed(0, t, "").error == "unknown drafting error"
