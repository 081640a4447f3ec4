# starmap/app.py
import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Query as QueryParam

from starmap.config import configure_logging, load_config
from starmap.sim.assets import UniverseUnavailable
from starmap.sim.catalog import STAR_COLORS, display_name, normalize_coordinate_key
from starmap.sim.search import Query, search
from starmap.sim.universe import Universe, UniverseStore

cfg = load_config()
configure_logging(cfg.log_level)

logger = logging.getLogger("starmap.app")

app = FastAPI()

store = UniverseStore(cfg)
_preload_task: Optional[asyncio.Task] = None


# ----------------------------
# Lifecycle
# ----------------------------

async def _preload() -> None:
    try:
        await store.get()
    except UniverseUnavailable:
        # already logged by the store; requests will answer 503 and retry
        pass


@app.on_event("startup")
async def on_startup():
    global _preload_task
    if not store.loaded:
        _preload_task = asyncio.create_task(_preload())
    logger.info(f"Starmap starting up (universe source: {cfg.universe_source})")


# ----------------------------
# Helpers
# ----------------------------

async def require_universe() -> Universe:
    try:
        return await store.get()
    except UniverseUnavailable:
        raise HTTPException(status_code=503, detail="universe_unavailable")


def http_from_valueerror(msg: str) -> HTTPException:
    """
    Convert query parsing ValueErrors to HTTP errors.
    The detail is the short code before the colon ("invalid_color: #zz" -> "invalid_color").
    """
    code = str(msg).split(":", 1)[0].strip()
    if code.startswith(("invalid_", "unknown_")):
        return HTTPException(status_code=400, detail=code)
    return HTTPException(status_code=400, detail="invalid_query")


# ----------------------------
# API
# ----------------------------

@app.get("/api/health")
def api_health():
    return {"ok": True, "loaded": store.loaded}


@app.get("/api/universe")
async def api_universe():
    universe = await require_universe()
    return {"ok": True, "universe": universe.summary()}


@app.get("/api/stars/colors")
def api_star_colors():
    return {
        "ok": True,
        "colors": {display_name(t): list(rgb) for t, rgb in STAR_COLORS.items()},
    }


@app.get("/api/systems/{x}/{y}")
async def api_system(x: int, y: int):
    universe = await require_universe()
    system = universe.system_at(x, y)
    if system is None:
        raise HTTPException(status_code=404, detail="system_not_found")
    return {"ok": True, "system": system.to_dict()}


@app.get("/api/bodies/{coord}")
async def api_body(coord: str):
    if normalize_coordinate_key(coord) is None:
        raise HTTPException(status_code=400, detail="invalid_coordinate")

    universe = await require_universe()
    body = universe.body_at(coord)
    if body is None:
        raise HTTPException(status_code=404, detail="body_not_found")
    return {"ok": True, "body": body.to_dict()}


@app.get("/api/planets/by-ranmat")
async def api_planet_by_ranmat(prefix: str = QueryParam(...)):
    if not prefix.strip():
        raise HTTPException(status_code=400, detail="prefix_required")

    universe = await require_universe()
    planet = universe.find_planet_by_random_material(prefix)
    if planet is None:
        raise HTTPException(status_code=404, detail="planet_not_found")
    return {"ok": True, "coordinate": planet.coordinate.key, "planet": planet.to_dict()}


@app.post("/api/search")
async def api_search(payload: Dict[str, Any] = Body(...)):
    try:
        query = Query.from_dict(payload)
    except ValueError as e:
        raise http_from_valueerror(str(e))

    universe = await require_universe()
    result = search(universe, query)
    if result is None:
        return {"ok": True, "result": None}
    return {"ok": True, "result": result.to_dict(limit=cfg.max_results)}
