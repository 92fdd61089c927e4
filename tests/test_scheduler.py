import asyncio

from conductor.errors import PersistenceError
from conductor.scheduler import run_weekly_pipeline
from tests.fakes import FakeDrafting, FakeKeywords, FakePracticeStore, build_conductor, keywords_for, make_practice


def test_weekly_runs_every_active_practice_as_scheduled():
    practices = FakePracticeStore(
        make_practice("p-1"),
        make_practice("p-2"),
        make_practice("p-3", account_health="churned"),
    )
    conductor, store = build_conductor(practices, FakeKeywords(researched=keywords_for("veneers")), FakeDrafting())

    outcomes = asyncio.run(run_weekly_pipeline(conductor, practices, max_concurrent_runs=1))

    assert [o.practice_id for o in outcomes] == ["p-1", "p-2"]
    assert all(o.status == "completed" for o in outcomes)
    for o in outcomes:
        assert store.get(o.run_id).trigger == "scheduled"


def test_one_practice_erroring_does_not_stop_the_rest(monkeypatch):
    practices = FakePracticeStore(make_practice("p-1"), make_practice("p-2"))
    conductor, store = build_conductor(practices, FakeKeywords(), FakeDrafting())
    real_create = store.create

    def _create(data):
        if data.practice_id == "p-1":
            raise PersistenceError("Failed to create conductor run: timeout")
        return real_create(data)

    monkeypatch.setattr(store, "create", _create)
    outcomes = asyncio.run(run_weekly_pipeline(conductor, practices))

    by_id = {o.practice_id: o for o in outcomes}
    assert by_id["p-1"].status == "error"
    assert by_id["p-1"].run_id is None
    assert "timeout" in by_id["p-1"].error
    assert by_id["p-2"].status == "completed"


def test_no_active_practices():
    conductor, _ = build_conductor(FakePracticeStore(), FakeKeywords(), FakeDrafting())
    assert asyncio.run(run_weekly_pipeline(conductor, FakePracticeStore())) == []
