import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordBearer
from pymongo.errors import PyMongoError

import assistant
import auth
import content
import creations
import giving
import members
import scripture
import views
from database import COLLECTIONS, Database
from schemas import (
    ActionResult,
    Contribution,
    ContributionRecord,
    Event,
    EventRecord,
    LoginResult,
    SavedEventIdea,
    SavedEventIdeaRecord,
    SavedSermonOutline,
    SavedSermonOutlineRecord,
    Teaching,
    TeachingRecord,
    TeamMember,
    TeamMemberRecord,
    User,
    UserRecord,
)
from settings import Settings
from views import ViewCache

logger = logging.getLogger("changara")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

Payload = Dict[str, Any]

STORE_UNAVAILABLE = "An unexpected error occurred. Please try again."


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# -----------------------------
# Dependencies
# -----------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_views(request: Request) -> ViewCache:
    return request.app.state.views


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user = auth.get_user_for_token(db, settings, token)
    except PyMongoError:
        logger.exception("Could not load the current user")
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    if not user:
        raise credentials_exception
    return user


def require_pastor(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if current_user.get("role") != "pastor":
        raise HTTPException(status_code=403, detail="Pastor only")
    return current_user


def _dump(items: List[Any]) -> List[Dict[str, Any]]:
    return [item.model_dump() for item in items]


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database.connect(settings)
        app.state.settings = settings
        app.state.db = db
        app.state.views = ViewCache()
        try:
            db.ensure_indexes()
        except PyMongoError:
            logger.exception("Could not create indexes")
        content.reconcile_teaching_links(db, app.state.views)
        logger.info("Changara Connect API started")
        yield
        if database is None:
            db.close()

    app = FastAPI(title="Changara Connect API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------
    # Health & Schema
    # -----------------------------
    @app.get("/")
    def root():
        return {"message": "Changara Connect API running"}

    @app.get("/schema")
    def get_schema():
        records = {
            "users": UserRecord,
            "events": EventRecord,
            "teachings": TeachingRecord,
            "contributions": ContributionRecord,
            "teamMembers": TeamMemberRecord,
            "savedEventIdeas": SavedEventIdeaRecord,
            "savedSermonOutlines": SavedSermonOutlineRecord,
        }
        return {
            "collections": [
                {"name": name, "schema": records[name].model_json_schema()} for name in COLLECTIONS
            ]
        }

    @app.get("/test")
    def test_database(db: Database = Depends(get_db)):
        response = {
            "backend": "OK",
            "database": "Connected",
            "database_name": db.name,
            "collections": [],
        }
        try:
            response["collections"] = db.ping()
        except PyMongoError as e:
            response["database"] = f"Error: {str(e)[:80]}"
        return response

    # -----------------------------
    # Auth
    # -----------------------------
    @app.post("/auth/signup", response_model=ActionResult, response_model_exclude_none=True)
    def signup(payload: Payload = Body(...), db: Database = Depends(get_db), cache: ViewCache = Depends(get_views)):
        return auth.signup(db, settings, cache, payload)

    @app.post("/auth/login", response_model=LoginResult, response_model_exclude_none=True)
    def login(payload: Payload = Body(...), db: Database = Depends(get_db)):
        return auth.login(db, settings, payload)

    @app.post("/auth/forgot-password", response_model=ActionResult, response_model_exclude_none=True)
    def forgot_password(payload: Payload = Body(...), db: Database = Depends(get_db)):
        return auth.request_password_reset(db, settings, payload)

    @app.post("/auth/reset-password", response_model=ActionResult, response_model_exclude_none=True)
    def reset_password(payload: Payload = Body(...), db: Database = Depends(get_db)):
        return auth.reset_password(db, payload)

    @app.get("/auth/me", response_model=User)
    def me(current_user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
        user = members.get_user_by_id(db, str(current_user["_id"]))
        if user is None:
            raise HTTPException(status_code=401, detail="Could not validate credentials")
        return user

    # -----------------------------
    # Events & Teachings
    # -----------------------------
    @app.get("/events", response_model=List[Event])
    def list_events(db: Database = Depends(get_db)):
        return content.list_events(db)

    @app.get("/events/{event_id}", response_model=Event)
    def get_event(event_id: str, db: Database = Depends(get_db)):
        event = content.get_event_by_id(db, event_id)
        if event is None:
            raise HTTPException(status_code=404, detail="Event not found")
        return event

    @app.post("/events", response_model=ActionResult, response_model_exclude_none=True)
    def create_event(
        payload: Payload = Body(...),
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return content.create_event(db, cache, payload)

    @app.put("/events/{event_id}", response_model=ActionResult, response_model_exclude_none=True)
    def update_event(
        event_id: str,
        payload: Payload = Body(...),
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return content.update_event(db, cache, {**payload, "id": event_id})

    @app.delete("/events/{event_id}", response_model=ActionResult, response_model_exclude_none=True)
    def delete_event(
        event_id: str,
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return content.delete_event(db, cache, event_id)

    @app.get("/teachings", response_model=List[Teaching])
    def list_teachings(db: Database = Depends(get_db)):
        return content.list_teachings(db)

    @app.get("/teachings/{teaching_id}", response_model=Teaching)
    def get_teaching(teaching_id: str, db: Database = Depends(get_db)):
        teaching = content.get_teaching_by_id(db, teaching_id)
        if teaching is None:
            raise HTTPException(status_code=404, detail="Teaching not found")
        return teaching

    @app.post("/teachings", response_model=ActionResult, response_model_exclude_none=True)
    def create_teaching(
        payload: Payload = Body(...),
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return content.create_teaching(db, cache, payload)

    @app.put("/teachings/{teaching_id}", response_model=ActionResult, response_model_exclude_none=True)
    def update_teaching(
        teaching_id: str,
        payload: Payload = Body(...),
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return content.update_teaching(db, cache, teaching_id, payload)

    @app.delete("/teachings/{teaching_id}", response_model=ActionResult, response_model_exclude_none=True)
    def delete_teaching(
        teaching_id: str,
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return content.delete_teaching(db, cache, teaching_id)

    @app.post("/maintenance/reconcile-teachings", response_model=ActionResult, response_model_exclude_none=True)
    def reconcile_teachings(
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return content.reconcile_teaching_links(db, cache)

    # -----------------------------
    # Members & Team
    # -----------------------------
    @app.get("/users", response_model=List[User])
    def list_users(db: Database = Depends(get_db), _: Dict[str, Any] = Depends(require_pastor)):
        return members.list_users(db)

    @app.get("/users/pastor", response_model=User)
    def get_pastor(db: Database = Depends(get_db)):
        pastor = members.get_pastor(db)
        if pastor is None:
            raise HTTPException(status_code=404, detail="Pastor not found")
        return pastor

    @app.get("/users/{user_id}", response_model=User)
    def get_user(user_id: str, db: Database = Depends(get_db), _: Dict[str, Any] = Depends(require_pastor)):
        user = members.get_user_by_id(db, user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @app.put("/users/{user_id}/picture", response_model=ActionResult, response_model_exclude_none=True)
    def update_picture(
        user_id: str,
        payload: Payload = Body(...),
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        current_user: Dict[str, Any] = Depends(get_current_user),
    ):
        if str(current_user["_id"]) != user_id and current_user.get("role") != "pastor":
            raise HTTPException(status_code=403, detail="You can only change your own picture")
        return members.update_user_profile_picture(db, cache, user_id, payload)

    @app.delete("/users/{user_id}", response_model=ActionResult, response_model_exclude_none=True)
    def delete_user(
        user_id: str,
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return members.delete_user(db, cache, user_id)

    @app.get("/team", response_model=List[TeamMember])
    def list_team(db: Database = Depends(get_db)):
        return members.list_team_members(db)

    @app.post("/team", response_model=ActionResult, response_model_exclude_none=True)
    def save_team_member(
        payload: Payload = Body(...),
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return members.save_team_member(db, cache, payload)

    @app.delete("/team/{member_id}", response_model=ActionResult, response_model_exclude_none=True)
    def delete_team_member(
        member_id: str,
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return members.delete_team_member(db, cache, member_id)

    # -----------------------------
    # Giving
    # -----------------------------
    @app.get("/contributions", response_model=List[Contribution])
    def list_contributions(db: Database = Depends(get_db), _: Dict[str, Any] = Depends(require_pastor)):
        return giving.list_contributions(db)

    @app.post("/give", response_model=ActionResult, response_model_exclude_none=True)
    def give(payload: Payload = Body(...), _: Dict[str, Any] = Depends(get_current_user)):
        return giving.initiate_stk_push(settings, payload)

    # -----------------------------
    # Saved AI creations
    # -----------------------------
    @app.get("/creations/event-ideas", response_model=List[SavedEventIdea])
    def list_saved_event_ideas(db: Database = Depends(get_db), _: Dict[str, Any] = Depends(require_pastor)):
        return creations.list_saved_event_ideas(db)

    @app.post("/creations/event-ideas", response_model=ActionResult, response_model_exclude_none=True)
    def save_event_idea(
        payload: Payload = Body(...),
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return creations.save_event_idea(db, cache, payload)

    @app.delete("/creations/event-ideas/{idea_id}", response_model=ActionResult, response_model_exclude_none=True)
    def delete_saved_event_idea(
        idea_id: str,
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return creations.delete_saved_event_idea(db, cache, idea_id)

    @app.get("/creations/sermons", response_model=List[SavedSermonOutline])
    def list_saved_sermons(db: Database = Depends(get_db), _: Dict[str, Any] = Depends(require_pastor)):
        return creations.list_saved_sermon_outlines(db)

    @app.post("/creations/sermons", response_model=ActionResult, response_model_exclude_none=True)
    def save_sermon(
        payload: Payload = Body(...),
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return creations.save_sermon_outline(db, cache, payload)

    @app.delete("/creations/sermons/{sermon_id}", response_model=ActionResult, response_model_exclude_none=True)
    def delete_saved_sermon(
        sermon_id: str,
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return creations.delete_saved_sermon_outline(db, cache, sermon_id)

    # -----------------------------
    # AI assistant
    # -----------------------------
    def _generate(flow, *args):
        try:
            return flow(settings, *args)
        except assistant.GenerationError as e:
            raise HTTPException(status_code=502, detail=str(e))

    @app.post("/ai/event-ideas", response_model=assistant.EventIdeasOutput)
    def event_ideas(body: assistant.EventIdeasInput, _: Dict[str, Any] = Depends(require_pastor)):
        return _generate(assistant.generate_event_ideas, body)

    @app.post("/ai/sermon-outline", response_model=assistant.SermonOutlineOutput)
    def sermon_outline(body: assistant.SermonOutlineInput, _: Dict[str, Any] = Depends(require_pastor)):
        return _generate(assistant.generate_sermon_outline, body)

    @app.get("/ai/daily-quote", response_model=assistant.DailyQuoteOutput)
    def daily_quote():
        return _generate(assistant.generate_daily_quote)

    @app.post("/ai/counsel", response_model=assistant.CounselingOutput)
    def counsel(body: assistant.CounselingInput, _: Dict[str, Any] = Depends(get_current_user)):
        return _generate(assistant.generate_counseling_response, body)

    # -----------------------------
    # Bible
    # -----------------------------
    @app.get("/bible/{book}/{chapter}", response_model=scripture.Passage)
    def read_chapter(book: str, chapter: int, translation: str = "kjv"):
        try:
            return scripture.lookup_passage(settings, book, chapter, translation)
        except scripture.InvalidPassageRequest as e:
            raise HTTPException(status_code=400, detail=str(e))
        except scripture.ScriptureLookupError as e:
            raise HTTPException(status_code=502, detail=str(e))

    # -----------------------------
    # Page views
    # -----------------------------
    def _page(cache: ViewCache, path: str, build):
        # A failed build is not cached, so the next request retries the store.
        try:
            return cache.render(path, build)
        except PyMongoError:
            logger.exception("Could not build page %s", path)
            raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)

    @app.get("/views/home")
    def home_view(db: Database = Depends(get_db), cache: ViewCache = Depends(get_views)):
        return _page(
            cache,
            views.HOME,
            lambda: {"team": _dump(members.fetch_team_members(db)), "events": _dump(content.fetch_events(db))},
        )

    @app.get("/views/dashboard")
    def member_dashboard_view(
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(get_current_user),
    ):
        return _page(
            cache,
            views.MEMBER_DASHBOARD,
            lambda: {"events": _dump(content.fetch_events(db)), "teachings": _dump(content.fetch_teachings(db))},
        )

    @app.get("/views/pastor/dashboard")
    def pastor_dashboard_view(
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return _page(
            cache,
            views.PASTOR_DASHBOARD,
            lambda: {
                "events": _dump(content.fetch_events(db)),
                "teachings": _dump(content.fetch_teachings(db)),
                "users": _dump(members.fetch_users(db)),
            },
        )

    @app.get("/views/pastor/members")
    def pastor_members_view(
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return _page(
            cache,
            views.PASTOR_MEMBERS,
            lambda: {"team": _dump(members.fetch_team_members(db)), "users": _dump(members.fetch_users(db))},
        )

    @app.get("/views/pastor/creations")
    def pastor_creations_view(
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return _page(
            cache,
            views.PASTOR_CREATIONS,
            lambda: {
                "event_ideas": _dump(creations.fetch_saved_event_ideas(db)),
                "sermons": _dump(creations.fetch_saved_sermon_outlines(db)),
            },
        )

    @app.get("/views/pastor/contributions")
    def pastor_contributions_view(
        db: Database = Depends(get_db),
        cache: ViewCache = Depends(get_views),
        _: Dict[str, Any] = Depends(require_pastor),
    ):
        return _page(
            cache,
            views.PASTOR_CONTRIBUTIONS,
            lambda: {"contributions": _dump(giving.fetch_contributions(db))},
        )

    return app


settings = Settings.from_env()
configure_logging(settings)
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
