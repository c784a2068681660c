import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

import content
import views
from database import EVENTS, TEACHINGS

SUNDAY_SERVICE = {
    "title": "Sunday Service",
    "description": "Weekly gathering",
    "date": "2024-09-01",
    "time": "10:00",
    "location": "Main Hall",
}


def _store_down(*args, **kwargs):
    raise ServerSelectionTimeoutError("store unreachable")


def test_create_event_round_trip(db, cache):
    result = content.create_event(db, cache, SUNDAY_SERVICE)

    assert result.success is True
    assert result.message == "Event created successfully!"
    events = content.list_events(db)
    assert len(events) == 1
    event = events[0].model_dump()
    assert isinstance(event["id"], str)
    assert "_id" not in event
    assert {k: event[k] for k in SUNDAY_SERVICE} == SUNDAY_SERVICE
    assert event["teaching_id"] is None
    assert event["image_url"].startswith("https://placehold.co/")


def test_partial_event_reports_missing_fields_and_writes_nothing(db, cache):
    result = content.create_event(db, cache, {"title": "Sunday Service", "date": "2024-09-01"})

    assert result.success is False
    assert set(result.errors) == {"description", "time", "location"}
    assert result.errors["location"] == ["Location is required."]
    assert content.list_events(db) == []


def test_empty_submission_is_rejected(db, cache):
    result = content.create_event(db, cache, {})

    assert result.success is False
    assert result.message == "Please fill out either the event details or the teaching details."
    assert set(result.errors) == set(SUNDAY_SERVICE)
    assert db[TEACHINGS].count_documents({}) == 0


def test_event_and_teaching_are_linked(db, cache):
    payload = dict(SUNDAY_SERVICE, teaching_text="Love one another", teaching_media_type="audio")

    result = content.create_event(db, cache, payload)

    assert result.message == "Event and Teaching created successfully!"
    event = content.list_events(db)[0]
    teaching = content.get_teaching_by_id(db, event.teaching_id)
    assert teaching.text == "Love one another"
    assert teaching.media_type == "audio"
    assert teaching.media_url == content.MEDIA_PLACEHOLDERS["audio"]
    # the application id is not the store id
    assert not db[TEACHINGS].find_one({"_id": teaching.id})


def test_teaching_only_submission(db, cache):
    result = content.create_event(db, cache, {"teaching_text": "Psalm 23 reflections"})

    assert result.message == "Teaching created successfully!"
    assert content.list_events(db) == []
    assert content.list_teachings(db)[0].media_type == "photo"


def test_failed_event_write_rolls_back_the_teaching(db, cache, monkeypatch):
    monkeypatch.setattr(db, "create_document", _store_down)

    result = content.create_event(db, cache, dict(SUNDAY_SERVICE, teaching_text="Orphan"))

    assert result.success is False
    assert result.message == "An unexpected error occurred. Please try again."
    assert db[TEACHINGS].count_documents({}) == 0


def test_events_sorted_by_date(db, cache):
    for day in ("2024-09-15", "2024-09-01", "2024-09-08"):
        content.create_event(db, cache, dict(SUNDAY_SERVICE, date=day))

    assert [e.date for e in content.list_events(db)] == ["2024-09-01", "2024-09-08", "2024-09-15"]


def test_get_event_by_id_handles_bad_and_unknown_ids(db, cache):
    content.create_event(db, cache, SUNDAY_SERVICE)
    event = content.list_events(db)[0]

    assert content.get_event_by_id(db, event.id).title == "Sunday Service"
    assert content.get_event_by_id(db, "not-an-id") is None
    assert content.get_event_by_id(db, str(ObjectId())) is None


def test_update_event_and_linked_teaching(db, cache):
    content.create_event(db, cache, dict(SUNDAY_SERVICE, teaching_text="Old notes"))
    event = content.list_events(db)[0]

    result = content.update_event(
        db,
        cache,
        dict(SUNDAY_SERVICE, id=event.id, location="Youth Hall", teaching_id=event.teaching_id, teaching_text="New notes"),
    )

    assert result.success is True
    assert content.get_event_by_id(db, event.id).location == "Youth Hall"
    assert content.get_teaching_by_id(db, event.teaching_id).text == "New notes"


@pytest.mark.parametrize(
    "event_id, message",
    [("bogus", "Invalid event ID."), (str(ObjectId()), "Could not find event to update.")],
)
def test_update_event_with_bad_id(db, cache, event_id, message):
    result = content.update_event(db, cache, dict(SUNDAY_SERVICE, id=event_id))

    assert result.success is False
    assert result.message == message


def test_update_event_requires_fields(db, cache):
    content.create_event(db, cache, SUNDAY_SERVICE)
    event = content.list_events(db)[0]

    result = content.update_event(db, cache, {"id": event.id, "title": ""})

    assert result.success is False
    assert "title" in result.errors
    assert content.get_event_by_id(db, event.id).title == "Sunday Service"


def test_delete_event(db, cache):
    content.create_event(db, cache, SUNDAY_SERVICE)
    event = content.list_events(db)[0]

    assert content.delete_event(db, cache, event.id).success is True
    missing = content.delete_event(db, cache, event.id)
    assert missing.success is False
    assert missing.message == "Could not find event to delete."
    assert content.delete_event(db, cache, "bogus").message == "Invalid event ID."


def test_deleting_a_teaching_unlinks_its_events(db, cache):
    content.create_event(db, cache, dict(SUNDAY_SERVICE, teaching_text="Linked"))
    event = content.list_events(db)[0]

    result = content.delete_teaching(db, cache, event.teaching_id)

    assert result.success is True
    assert content.get_event_by_id(db, event.id).teaching_id is None
    assert "teaching_id" not in db[EVENTS].find_one({})


def test_delete_unknown_teaching(db, cache):
    result = content.delete_teaching(db, cache, "no-such-teaching")

    assert result.success is False
    assert result.message == "Could not find teaching to delete."


def test_create_teaching_validates_media_type(db, cache):
    bad = content.create_teaching(db, cache, {"text": "Notes"})
    good = content.create_teaching(db, cache, {"media_type": "video", "text": "Notes"})

    assert bad.success is False and list(bad.errors) == ["media_type"]
    assert good.success is True
    assert len(content.list_teachings(db)) == 1


def test_update_teaching(db, cache):
    content.create_teaching(db, cache, {"media_type": "photo", "text": "Draft"})
    teaching = content.list_teachings(db)[0]

    assert content.update_teaching(db, cache, teaching.id, {"text": "Final"}).success
    assert content.get_teaching_by_id(db, teaching.id).text == "Final"
    assert content.update_teaching(db, cache, "missing", {"text": "x"}).success is False


def test_reconcile_clears_dangling_links(db, cache):
    content.create_event(db, cache, dict(SUNDAY_SERVICE, teaching_text="Will vanish"))
    content.create_event(db, cache, dict(SUNDAY_SERVICE, title="Kept", teaching_text="Stays"))
    vanished = db[EVENTS].find_one({"title": "Sunday Service"})["teaching_id"]
    db[TEACHINGS].delete_one({"id": vanished})

    result = content.reconcile_teaching_links(db, cache)

    assert result.success is True
    assert result.message == "Repaired 1 event link(s)."
    assert "teaching_id" not in db[EVENTS].find_one({"title": "Sunday Service"})
    assert db[EVENTS].find_one({"title": "Kept"})["teaching_id"]


def test_mutations_revalidate_dashboards(db, cache):
    for path in content.CONTENT_PATHS:
        cache.render(path, lambda: "stale")

    content.create_event(db, cache, SUNDAY_SERVICE)

    assert not any(cache.is_cached(path) for path in content.CONTENT_PATHS)


def test_failed_validation_keeps_cached_views(db, cache):
    cache.render(views.PASTOR_DASHBOARD, lambda: "cached")

    content.create_event(db, cache, {"title": "Half"})

    assert cache.is_cached(views.PASTOR_DASHBOARD)


def test_store_failures_never_escape(db, cache, monkeypatch):
    monkeypatch.setattr(db, "get_documents", _store_down)
    monkeypatch.setattr(db, "create_document", _store_down)
    monkeypatch.setattr(type(db[EVENTS]), "delete_one", _store_down)

    assert content.list_events(db) == []
    assert content.list_teachings(db) == []
    assert content.create_event(db, cache, SUNDAY_SERVICE).success is False
    deleted = content.delete_event(db, cache, str(ObjectId()))
    assert deleted.success is False
    assert deleted.message == "An unexpected error occurred."
