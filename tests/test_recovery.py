from datetime import datetime, timedelta, timezone

from conductor.models.runs import RunCreate
from conductor.recovery import reap_stale_runs


def test_reaps_only_old_running_runs(run_store):
    stale = run_store.create(RunCreate(organization_id="org-1", practice_id="p-1"))
    run_store.checkpoint(stale.run_id, {"stage": "ghostwriter"}, "ghostwriter")
    done = run_store.create(RunCreate(organization_id="org-1", practice_id="p-2"))
    run_store.complete(done.run_id, {})

    later = datetime.now(timezone.utc) + timedelta(hours=3)
    reaped = reap_stale_runs(run_store, max_age=timedelta(hours=2), now=later)

    assert reaped == [stale.run_id]
    run = run_store.get(stale.run_id)
    assert run.status == "failed"
    assert run.error == "abandoned at stage ghostwriter"
    assert run_store.get(done.run_id).status == "completed"


def test_recent_runs_are_left_alone(run_store):
    run_store.create(RunCreate(organization_id="org-1", practice_id="p-1"))
    assert reap_stale_runs(run_store, max_age=timedelta(hours=2)) == []
    assert len(run_store.list_active()) == 1
