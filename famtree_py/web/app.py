from fastapi import Body, Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from datetime import date
from typing import Any, Dict, List, Optional, Union
import logging
import re

from ..config import Config, load_config
from ..exporters import EXTENSIONS, FORMATS, MEDIA_TYPES, ImportFormatError, export_text, merge_data
from ..fs import PersistenceError
from ..interaction import InteractionController, PersonFormValues
from ..models import FamilyDocument, FamilyEvent, Person
from ..normalizer import find_problems
from ..search import family_stats, filter_members, recently_updated, sort_members
from ..seed import seed_store
from ..settings import Settings, SettingsError, default_settings, load_settings, save_settings
from ..store import JsonFileStore, PersonStore, open_store

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {_CAMEL.sub("_", k).lower(): v for k, v in data.items()}


def get_store(request: Request) -> PersonStore:
    return request.app.state.store


def get_file_store(request: Request) -> JsonFileStore:
    return request.app.state.file_store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _controller(
    store: PersonStore, settings: Settings, cfg: Config, root: Optional[str], collapsed: Optional[str], zoom: int
):
    ctl = InteractionController(store, settings, templates_dir=cfg.templates_dir)
    ctl.choose_root(root)
    for pid in (collapsed or "").split(","):
        if pid.strip():
            ctl.toggle_collapse(pid.strip())
    ctl.zoom.set_level(zoom)
    return ctl


def create_app(config: Optional[Config] = None) -> FastAPI:
    cfg = config or load_config()
    logging.basicConfig(level=getattr(logging, cfg.log_level, logging.INFO))
    app = FastAPI(title="famtree-py")
    app.state.config = cfg
    templates = Jinja2Templates(directory=str(cfg.templates_dir))

    @app.on_event("startup")
    def _open_store_on_startup():
        """Load the family file (seeding an empty one) and settings."""
        try:
            store, file_store = open_store(cfg.data_path, seed_store if cfg.seed else None)
            logging.info("Store opened at %s with %d persons", cfg.data_path, len(store))
        except PersistenceError:
            logging.exception("Failed to load %s; starting with an empty, unsaved store", cfg.data_path)
            store, file_store = PersonStore(), JsonFileStore(cfg.data_path)
        app.state.store = store
        app.state.file_store = file_store
        # the configured depth is only the default; a stored generation limit wins
        app.state.settings = load_settings(cfg.settings_path, default_settings(cfg.max_depth))

    @app.exception_handler(PersistenceError)
    def _persistence_error(request: Request, exc: PersistenceError):
        logging.error("Persistence failure on %s", request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    # --- HTML pages ---
    @app.get("/", response_class=HTMLResponse)
    def tree_page(
        request: Request,
        root: Optional[str] = None,
        collapsed: Optional[str] = None,
        zoom: int = 100,
        store: PersonStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        ctl = _controller(store, settings, cfg, root, collapsed, zoom)
        try:
            view = ctl.render()
        finally:
            ctl.close()
        ctx = {
            "view": view,
            "stats": family_stats(store.list()),
            "recent": recently_updated(store.list()),
            "persons": sort_members(store.list(), settings.advanced.sort_by),
        }
        return templates.TemplateResponse(request, "index.html", ctx)

    @app.get("/person/{pid}", response_class=HTMLResponse)
    def person_page(
        request: Request,
        pid: str,
        store: PersonStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        if pid not in store:
            raise HTTPException(status_code=404, detail="Person not found")
        ctl = InteractionController(store, settings)
        try:
            ctl.click_node(pid)
            details = ctl.details()
        finally:
            ctl.close()
        ctx = {"d": details, "events": store.events_for(pid), "documents": store.documents_for(pid)}
        return templates.TemplateResponse(request, "person.html", ctx)

    @app.get("/person/{pid}/edit", response_class=HTMLResponse)
    def edit_person_form(request: Request, pid: str, store: PersonStore = Depends(get_store)):
        p = store.get(pid)
        if p is None:
            raise HTTPException(status_code=404, detail="Person not found")
        return templates.TemplateResponse(
            request, "edit_person.html", {"person": p, "form": PersonFormValues.from_person(p)}
        )

    @app.post("/person/{pid}/edit")
    def edit_person(
        pid: str,
        name: str = Form(""),
        birth_year: str = Form(""),
        death_year: str = Form(""),
        location: str = Form(""),
        occupation: str = Form(""),
        notes: str = Form(""),
        store: PersonStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        if pid not in store:
            raise HTTPException(status_code=404, detail="Person not found")
        ctl = InteractionController(store, settings)
        try:
            ctl.click_node(pid)
            ctl.toggle_edit()
            ctl.save(PersonFormValues(name, birth_year, death_year, location, occupation, notes))
        finally:
            ctl.close()
        return RedirectResponse(url=f"/person/{pid}", status_code=303)

    @app.post("/person/{pid}/delete")
    def delete_person(
        pid: str,
        confirm: str = Form(""),
        store: PersonStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        if pid not in store:
            raise HTTPException(status_code=404, detail="Person not found")
        ctl = InteractionController(store, settings)
        try:
            ctl.click_node(pid)
            deleted = ctl.delete(lambda person: confirm == "yes")
        finally:
            ctl.close()
        return RedirectResponse(url="/" if deleted else f"/person/{pid}", status_code=303)

    @app.get("/tree")
    def tree_svg(
        root: Optional[str] = None,
        collapsed: Optional[str] = None,
        zoom: int = 100,
        width: Optional[float] = None,
        height: Optional[float] = None,
        store: PersonStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        ctl = _controller(store, settings, cfg, root, collapsed, zoom)
        try:
            view = ctl.render((width, height) if width and height else None)
        finally:
            ctl.close()
        return Response(content=view.svg, media_type="image/svg+xml")

    # --- JSON API ---
    @app.get("/api/family")
    def api_family(file_store: JsonFileStore = Depends(get_file_store)):
        try:
            return file_store.read_map()
        except PersistenceError:
            logging.exception("Failed to load family data")
            return JSONResponse(status_code=500, content={"error": "Failed to load family data"})

    @app.post("/api/add-member")
    def api_add_member(
        data: Dict[str, Any] = Body(...),
        store: PersonStore = Depends(get_store),
        file_store: JsonFileStore = Depends(get_file_store),
    ):
        try:
            person = file_store.merge_person(data)
            store.put(person)
        except PersistenceError as exc:
            logging.exception("Failed to save member")
            return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
        return {"success": True, "person": person.to_dict()}

    @app.get("/api/person/{pid}")
    def api_person(pid: str, store: PersonStore = Depends(get_store)):
        p = store.get(pid)
        if p is None:
            raise HTTPException(status_code=404, detail="Person not found")
        return p.to_dict()

    @app.post("/api/person", status_code=201)
    def api_create_person(data: Dict[str, Any] = Body(...), store: PersonStore = Depends(get_store)):
        p = Person.from_dict(data)
        if not store.add(p):
            raise HTTPException(status_code=409, detail="Duplicate member")
        return p.to_dict()

    @app.put("/api/person/{pid}")
    def api_update_person(pid: str, data: Dict[str, Any] = Body(...), store: PersonStore = Depends(get_store)):
        p = store.update(pid, _snake_keys(data))
        if p is None:
            raise HTTPException(status_code=404, detail="Person not found")
        return p.to_dict()

    @app.delete("/api/person/{pid}")
    def api_delete_person(pid: str, store: PersonStore = Depends(get_store)):
        if not store.delete(pid):
            raise HTTPException(status_code=404, detail="Person not found")
        return {"success": True}

    @app.get("/api/search")
    def api_search(
        q: str = "",
        store: PersonStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        hits = store.search(q, case_sensitive=settings.advanced.case_sensitive_search)
        return [p.to_dict() for p in hits]

    @app.get("/api/members")
    def api_members(
        status: str = "all",
        min_year: Optional[int] = None,
        max_year: Optional[int] = None,
        sort: Optional[str] = None,
        store: PersonStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        try:
            members = filter_members(store.list(), status, min_year, max_year)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return [p.to_dict() for p in sort_members(members, sort or settings.advanced.sort_by)]

    @app.get("/api/stats")
    def api_stats(store: PersonStore = Depends(get_store)):
        st = family_stats(store.list())
        return {
            "total": st.total,
            "alive": st.alive,
            "deceased": st.deceased,
            "generations": st.generations,
            "lastUpdated": st.last_updated.isoformat() if st.last_updated else None,
            "recent": [p.id for p in recently_updated(store.list())],
        }

    @app.get("/api/tree")
    def api_tree(
        root: Optional[str] = None,
        collapsed: Optional[str] = None,
        zoom: int = 100,
        width: Optional[float] = None,
        height: Optional[float] = None,
        store: PersonStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ):
        ctl = _controller(store, settings, cfg, root, collapsed, zoom)
        try:
            view = ctl.render((width, height) if width and height else None)
        finally:
            ctl.close()
        out = view.layout.to_dict()
        out.update({"scale": view.scale, "autoFit": view.auto_fit, "zoom": view.zoom, "empty": view.is_empty})
        return out

    @app.get("/api/export/{fmt}")
    def api_export(fmt: str, store: PersonStore = Depends(get_store)):
        if fmt not in FORMATS:
            raise HTTPException(status_code=404, detail=f"Unknown export format {fmt}")
        filename = f"family-tree-{date.today().isoformat()}.{EXTENSIONS[fmt]}"
        return Response(
            content=export_text(store, fmt),
            media_type=MEDIA_TYPES[fmt],
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/import")
    def api_import(
        data: Union[Dict[str, Any], List[Any]] = Body(...),
        store: PersonStore = Depends(get_store),
    ):
        try:
            result = merge_data(store, data)
        except ImportFormatError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"success": True, **result.to_dict()}

    @app.get("/api/timeline")
    def api_timeline(person: Optional[str] = None, store: PersonStore = Depends(get_store)):
        events = store.events_for(person) if person else store.timeline()
        return [e.to_dict() for e in events]

    @app.post("/api/events", status_code=201)
    def api_add_event(data: Dict[str, Any] = Body(...), store: PersonStore = Depends(get_store)):
        ev = FamilyEvent.from_dict(data)
        store.add_event(ev)
        return ev.to_dict()

    @app.delete("/api/events/{eid}")
    def api_delete_event(eid: str, store: PersonStore = Depends(get_store)):
        if not store.delete_event(eid):
            raise HTTPException(status_code=404, detail="Event not found")
        return {"success": True}

    @app.get("/api/documents")
    def api_documents(store: PersonStore = Depends(get_store)):
        return [d.to_dict() for d in store.list_documents()]

    @app.post("/api/documents", status_code=201)
    def api_add_document(data: Dict[str, Any] = Body(...), store: PersonStore = Depends(get_store)):
        doc = FamilyDocument.from_dict(data)
        store.add_document(doc)
        return doc.to_dict()

    @app.get("/api/settings")
    def api_get_settings(settings: Settings = Depends(get_settings)):
        return settings.to_dict()

    @app.put("/api/settings")
    def api_put_settings(
        request: Request,
        data: Dict[str, Any] = Body(...),
        settings: Settings = Depends(get_settings),
    ):
        try:
            new = settings.merge(data)
        except SettingsError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        save_settings(cfg.settings_path, new)
        request.app.state.settings = new
        return new.to_dict()

    @app.get("/api/check")
    def api_check(store: PersonStore = Depends(get_store)):
        persons = store.snapshot()
        problems = find_problems(persons)
        return {
            "ok": not problems,
            "problems": [
                {"personId": pr.person_id, "kind": pr.kind, "ref": pr.ref, "message": pr.describe(persons)}
                for pr in problems
            ],
        }

    return app


app = create_app()
