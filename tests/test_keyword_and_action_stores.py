from unittest.mock import MagicMock

import pytest
from pymongo import UpdateOne
from pymongo.errors import PyMongoError

from conductor.db import actions as actions_db
from conductor.db import keywords as keywords_db
from conductor.db.actions import MongoActionStore
from conductor.db.keywords import MongoKeywordStore
from conductor.errors import PersistenceError
from conductor.models.practice import KeywordData


@pytest.fixture
def collection():
    col = MagicMock()
    col.bulk_write.return_value = MagicMock(upserted_count=1, matched_count=1)
    return col


def test_keywords_upsert_without_touching_positions(collection, practice):
    store = MongoKeywordStore({keywords_db.COLLECTION: collection})
    saved = store.upsert_tracked(practice, [
        KeywordData(keyword="veneers", search_volume=300, difficulty=20),
        KeywordData(keyword="implants", search_volume=900, difficulty=40, source="gap"),
        KeywordData(keyword="veneers", search_volume=320, difficulty=21),
    ])

    assert saved == 2
    ops, = collection.bulk_write.call_args.args
    assert collection.bulk_write.call_args.kwargs == {"ordered": False}
    assert len(ops) == 2
    assert all(isinstance(op, UpdateOne) for op in ops)
    veneers = ops[0]._doc
    assert ops[0]._filter == {"client_id": "p-1", "keyword": "veneers"}
    assert veneers["$set"]["search_volume"] == 320
    assert "current_position" not in veneers["$set"]
    assert veneers["$setOnInsert"]["current_position"] is None
    assert ops[1]._doc["$set"]["source"] == "gap"


def test_no_keywords_means_no_write(collection, practice):
    assert MongoKeywordStore({keywords_db.COLLECTION: collection}).upsert_tracked(practice, []) == 0
    collection.bulk_write.assert_not_called()


def test_keyword_write_errors_become_persistence_errors(collection, practice):
    collection.bulk_write.side_effect = PyMongoError("down")
    with pytest.raises(PersistenceError, match="p-1"):
        MongoKeywordStore({keywords_db.COLLECTION: collection}).upsert_tracked(
            practice, [KeywordData(keyword="veneers")]
        )


def test_keyword_index_is_unique_per_practice(collection):
    MongoKeywordStore({keywords_db.COLLECTION: collection}).init_indexes()
    keys = collection.create_index.call_args.args[0]
    assert keys == [("client_id", 1), ("keyword", 1)]
    assert collection.create_index.call_args.kwargs == {"unique": True}


def test_actions_are_pending_until_approved(collection):
    store = MongoActionStore({actions_db.COLLECTION: collection})
    action_id = store.record({"agent": "ghostwriter", "action_type": "content_review", "severity": "critical"})

    doc = collection.insert_one.call_args.args[0]
    assert doc["id"] == action_id
    assert doc["status"] == "pending"
    assert doc["severity"] == "critical"
    assert doc["approved_by"] is None
    assert doc["created_at"].tzinfo is not None


def test_record_many_returns_ids_in_order(collection):
    store = MongoActionStore({actions_db.COLLECTION: collection})
    ids = store.record_many([{"action_type": "content_recommendation"}] * 3)

    docs = collection.insert_many.call_args.args[0]
    assert ids == [d["id"] for d in docs]
    assert len(set(ids)) == 3
    assert store.record_many([]) == []


def test_action_write_errors_become_persistence_errors(collection):
    collection.insert_one.side_effect = PyMongoError("down")
    with pytest.raises(PersistenceError, match="content_review"):
        MongoActionStore({actions_db.COLLECTION: collection}).record({"action_type": "content_review"})
