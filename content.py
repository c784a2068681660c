"""
Events and teachings

An event may link to a teaching through `teaching_id`, which holds the
teaching's application id rather than its `_id`. There is no cross-document
transaction, so the pair is kept consistent by:

- writing the teaching before the event that links to it, and deleting the
  teaching again if the event write fails;
- clearing `teaching_id` on every referencing event before a teaching is
  deleted;
- `reconcile_teaching_links`, which clears any link left dangling by a
  partial failure. It runs at startup and can be triggered by the pastor.
"""

import logging
import uuid
from typing import Any, List, Mapping, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

import views
from database import EVENTS, TEACHINGS, Database, parse_object_id, utc_now_iso
from schemas import (
    PLACEHOLDER_IMAGE,
    ActionResult,
    Event,
    EventForm,
    EventRecord,
    EventUpdateForm,
    Teaching,
    TeachingForm,
    TeachingRecord,
    TeachingUpdateForm,
    to_view,
    validate,
)
from views import ViewCache

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."
FIX_ERRORS = "Please correct the errors and try again."
EMPTY_SUBMISSION = "Please fill out either the event details or the teaching details."

MEDIA_PLACEHOLDERS = {
    "photo": PLACEHOLDER_IMAGE,
    "video": "https://placehold.co/600x400.png/000000/FFFFFF?text=Video",
    "audio": "https://placehold.co/600x400.png/E8E8E8/000000?text=Audio",
}

# Pages that list events or teachings.
CONTENT_PATHS = (views.PASTOR_DASHBOARD, views.MEMBER_DASHBOARD, views.HOME)


def _event_view(doc: Mapping[str, Any]) -> Optional[Event]:
    return to_view(Event, doc, image_url=doc.get("image_url") or PLACEHOLDER_IMAGE)


def _insert_teaching(db: Database, media_type: str, text: Optional[str], media_url: Optional[str]) -> str:
    record = TeachingRecord(
        id=str(uuid.uuid4()),
        media_type=media_type,
        media_url=media_url or MEDIA_PLACEHOLDERS[media_type],
        text=text or None,
        created_at=utc_now_iso(),
    )
    db[TEACHINGS].insert_one(record.model_dump(exclude_none=True))
    return record.id


def _discard_teaching(db: Database, teaching_id: str) -> None:
    try:
        db[TEACHINGS].delete_one({"id": teaching_id})
    except PyMongoError:
        logger.exception("Could not roll back teaching %s", teaching_id)


# -----------------------------
# Events
# -----------------------------
def create_event(db: Database, cache: ViewCache, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(EventForm, raw)
    if errors:
        return ActionResult(success=False, message=FIX_ERRORS, errors=errors)

    fields = form.event_fields()
    given = {name: value for name, value in fields.items() if value}
    has_event = len(given) == len(fields)

    if not given and not form.has_teaching:
        return ActionResult(
            success=False,
            message=EMPTY_SUBMISSION,
            errors={name: [EMPTY_SUBMISSION] for name in fields},
        )
    if given and not has_event:
        missing = [name for name in fields if name not in given]
        return ActionResult(
            success=False,
            message=FIX_ERRORS,
            errors={name: [f"{name.capitalize()} is required."] for name in missing},
        )

    teaching_id = None
    try:
        if form.has_teaching:
            teaching_id = _insert_teaching(
                db,
                form.teaching_media_type or "photo",
                form.teaching_text,
                form.teaching_media_url,
            )
        if has_event:
            record = EventRecord(**given, teaching_id=teaching_id, created_at=utc_now_iso())
            try:
                db.create_document(EVENTS, record.model_dump(exclude_none=True))
            except PyMongoError:
                if teaching_id:
                    _discard_teaching(db, teaching_id)
                raise
    except PyMongoError:
        logger.exception("Create event error")
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    cache.revalidate(*CONTENT_PATHS)
    if has_event and teaching_id:
        message = "Event and Teaching created successfully!"
    elif has_event:
        message = "Event created successfully!"
    else:
        message = "Teaching created successfully!"
    return ActionResult(success=True, message=message)


def update_event(db: Database, cache: ViewCache, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(EventUpdateForm, raw)
    if errors:
        return ActionResult(success=False, message=FIX_ERRORS, errors=errors)

    event_id = parse_object_id(form.id)
    if event_id is None:
        return ActionResult(success=False, message="Invalid event ID.")

    changes = form.model_dump(include=set(EventForm.EVENT_FIELDS))
    try:
        result = db[EVENTS].update_one({"_id": event_id}, {"$set": changes})
        if result.matched_count == 0:
            return ActionResult(success=False, message="Could not find event to update.")

        if form.teaching_id and form.teaching_text:
            linked = db[TEACHINGS].update_one({"id": form.teaching_id}, {"$set": {"text": form.teaching_text}})
            if linked.matched_count == 0:
                logger.warning("Event %s points at missing teaching %s", form.id, form.teaching_id)
    except PyMongoError:
        logger.exception("Update event error")
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    cache.revalidate(*CONTENT_PATHS)
    return ActionResult(success=True, message="Event updated successfully!")


def fetch_events(db: Database) -> List[Event]:
    """Events by date. Store errors propagate to the caller."""
    docs = db.get_documents(EVENTS, sort=[("date", ASCENDING)])
    return [event for event in map(_event_view, docs) if event]


def list_events(db: Database) -> List[Event]:
    try:
        return fetch_events(db)
    except PyMongoError:
        logger.exception("Failed to fetch events")
        return []


def get_event_by_id(db: Database, event_id: str) -> Optional[Event]:
    oid = parse_object_id(event_id)
    if oid is None:
        return None
    try:
        doc = db[EVENTS].find_one({"_id": oid})
    except PyMongoError:
        logger.exception("Failed to fetch event %s", event_id)
        return None
    return _event_view(doc) if doc else None


def delete_event(db: Database, cache: ViewCache, event_id: str) -> ActionResult:
    oid = parse_object_id(event_id)
    if oid is None:
        return ActionResult(success=False, message="Invalid event ID.")
    try:
        result = db[EVENTS].delete_one({"_id": oid})
    except PyMongoError:
        logger.exception("Delete event error")
        return ActionResult(success=False, message="An unexpected error occurred.")

    if result.deleted_count == 0:
        return ActionResult(success=False, message="Could not find event to delete.")

    cache.revalidate(*CONTENT_PATHS)
    return ActionResult(success=True, message="Event deleted successfully.")


# -----------------------------
# Teachings
# -----------------------------
def create_teaching(db: Database, cache: ViewCache, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(TeachingForm, raw)
    if errors:
        return ActionResult(success=False, message=FIX_ERRORS, errors=errors)

    try:
        _insert_teaching(db, form.media_type, form.text, form.media_url)
    except PyMongoError:
        logger.exception("Create teaching error")
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    cache.revalidate(*CONTENT_PATHS)
    return ActionResult(success=True, message="Teaching uploaded successfully!")


def update_teaching(db: Database, cache: ViewCache, teaching_id: str, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(TeachingUpdateForm, raw)
    if errors:
        return ActionResult(success=False, message=FIX_ERRORS, errors=errors)
    if not teaching_id:
        return ActionResult(success=False, message="Invalid teaching ID.")

    try:
        result = db[TEACHINGS].update_one({"id": teaching_id}, {"$set": {"text": form.text}})
    except PyMongoError:
        logger.exception("Update teaching error")
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    if result.matched_count == 0:
        return ActionResult(success=False, message="Could not find teaching to update.")

    cache.revalidate(*CONTENT_PATHS)
    return ActionResult(success=True, message="Teaching updated successfully!")


def fetch_teachings(db: Database) -> List[Teaching]:
    docs = db.get_documents(TEACHINGS, sort=[("created_at", DESCENDING)])
    return [teaching for teaching in (to_view(Teaching, doc) for doc in docs) if teaching]


def list_teachings(db: Database) -> List[Teaching]:
    try:
        return fetch_teachings(db)
    except PyMongoError:
        logger.exception("Failed to fetch teachings")
        return []


def get_teaching_by_id(db: Database, teaching_id: str) -> Optional[Teaching]:
    if not teaching_id:
        return None
    try:
        doc = db[TEACHINGS].find_one({"id": teaching_id})
    except PyMongoError:
        logger.exception("Failed to fetch teaching %s", teaching_id)
        return None
    return to_view(Teaching, doc) if doc else None


def delete_teaching(db: Database, cache: ViewCache, teaching_id: str) -> ActionResult:
    if not teaching_id:
        return ActionResult(success=False, message="Invalid teaching ID.")
    try:
        # Unlink first so no event is ever left pointing at a deleted teaching.
        db[EVENTS].update_many({"teaching_id": teaching_id}, {"$unset": {"teaching_id": ""}})
        result = db[TEACHINGS].delete_one({"id": teaching_id})
    except PyMongoError:
        logger.exception("Delete teaching error")
        return ActionResult(success=False, message="An unexpected error occurred.")

    if result.deleted_count == 0:
        return ActionResult(success=False, message="Could not find teaching to delete.")

    cache.revalidate(*CONTENT_PATHS)
    return ActionResult(success=True, message="Teaching deleted successfully.")


def reconcile_teaching_links(db: Database, cache: ViewCache) -> ActionResult:
    """Clear `teaching_id` on events whose teaching no longer exists."""
    try:
        linked = [tid for tid in db[EVENTS].distinct("teaching_id", {"teaching_id": {"$exists": True}}) if tid]
        existing = set(db[TEACHINGS].distinct("id", {"id": {"$in": linked}})) if linked else set()
        dangling = [tid for tid in linked if tid not in existing]
        repaired = 0
        if dangling:
            result = db[EVENTS].update_many({"teaching_id": {"$in": dangling}}, {"$unset": {"teaching_id": ""}})
            repaired = result.modified_count
    except PyMongoError:
        logger.exception("Teaching link reconciliation error")
        return ActionResult(success=False, message="An unexpected error occurred.")

    if repaired:
        logger.warning("Cleared %d dangling teaching link(s)", repaired)
        cache.revalidate(*CONTENT_PATHS)
    return ActionResult(success=True, message=f"Repaired {repaired} event link(s).")
