from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError
from typing import TYPE_CHECKING, Literal, Optional

if TYPE_CHECKING:
    from .main import MeloService

app = FastAPI(title="Melo Sync")
service: Optional["MeloService"] = None

class OpenBody(BaseModel):
    browser_id: str
    path: Optional[str] = None

class EntryBody(BaseModel):
    name: str

class ActBody(BaseModel):
    kind: Literal["play", "add", "remove"]
    path: str

class StateBody(BaseModel):
    state: str

class SeekBody(BaseModel):
    pos: Optional[int] = None
    fraction: Optional[float] = None

class ToggleBody(BaseModel):
    enabled: bool

@app.exception_handler(ValidationError)
async def invalid_request(request: Request, exc: ValidationError):
    errors = exc.errors(include_url=False, include_context=False, include_input=False)
    return JSONResponse(status_code=400, content={"detail": errors})

def _service() -> "MeloService":
    if not service:
        raise HTTPException(status_code=503, detail="Service not ready")
    return service

def _player(player_id: str):
    player = _service().registry.get_player(player_id)
    if player is None:
        raise HTTPException(status_code=404, detail=f"Unknown player {player_id}")
    return player

@app.get("/healthz")
def healthz():
    if not service:
        return {"status": "starting"}
    return {"status": "ok", "modules": len(service.registry.modules)}

@app.get("/state")
def state():
    svc = _service()
    snapshot = svc.registry.snapshot()
    snapshot["polling"] = {
        "players": svc.supervisor.player_polling,
        "playlist": svc.supervisor.playlist_polling
    }
    return snapshot

@app.get("/metrics")
def metrics():
    # Simple prometheus-style text format
    if not service:
        return PlainTextResponse("")

    registry = service.registry
    supervisor = service.supervisor
    lines = [
        f'melo_sync_modules {len(registry.modules)}',
        f'melo_sync_players {len(registry.all_players())}',
        f'melo_sync_running_timers {supervisor.running_timers}',
        f'melo_sync_player_polling {int(supervisor.player_polling)}',
        f'melo_sync_playlist_polling {int(supervisor.playlist_polling)}'
    ]
    return PlainTextResponse("\n".join(lines))

# Modules

@app.post("/modules/refresh")
async def refresh_modules():
    return {"ok": await _service().discovery.discover_modules()}

@app.post("/modules/{module_id}/info")
async def module_info(module_id: str):
    return {"ok": await _service().discovery.get_module_info(module_id)}

@app.post("/modules/{module_id}/browsers")
async def module_browsers(module_id: str):
    return {"ok": await _service().discovery.get_browsers_of(module_id)}

@app.post("/modules/{module_id}/players")
async def module_players(module_id: str):
    return {"ok": await _service().discovery.get_players_of(module_id)}

# Browser

@app.post("/browsers/{browser_id}/info")
async def browser_info(browser_id: str):
    return {"ok": await _service().discovery.get_browser_info(browser_id)}

@app.post("/browser/open")
async def browser_open(body: OpenBody):
    return {"ok": await _service().navigator.open(body.browser_id, body.path)}

@app.post("/browser/ascend")
async def browser_ascend():
    return {"ok": await _service().navigator.ascend()}

@app.post("/browser/reload")
async def browser_reload():
    return {"ok": await _service().navigator.reload()}

@app.post("/browser/select")
async def browser_select(body: EntryBody):
    navigator = _service().navigator
    entry = navigator.find_entry(body.name)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Unknown entry {body.name}")
    return {"ok": await navigator.select(entry)}

@app.post("/browser/act")
async def browser_act(body: ActBody):
    return {"ok": await _service().navigator.act(body.kind, body.path)}

# Players

@app.post("/players/{player_id}/refresh")
async def player_refresh(player_id: str):
    return {"ok": await _service().player_poller.refresh(_player(player_id))}

@app.post("/players/{player_id}/state")
async def player_state(player_id: str, body: StateBody):
    return {"ok": await _service().player_poller.set_state(_player(player_id), body.state)}

@app.post("/players/{player_id}/toggle")
async def player_toggle(player_id: str):
    return {"ok": await _service().player_poller.toggle(_player(player_id))}

@app.post("/players/{player_id}/stop")
async def player_stop(player_id: str):
    return {"ok": await _service().player_poller.stop(_player(player_id))}

@app.post("/players/{player_id}/step/{direction}")
async def player_step(player_id: str, direction: Literal["prev", "next"]):
    return {"ok": await _service().player_poller.step(_player(player_id), direction)}

@app.post("/players/{player_id}/seek")
async def player_seek(player_id: str, body: SeekBody):
    poller = _service().player_poller
    player = _player(player_id)
    if body.pos is not None:
        return {"ok": await poller.seek(player, body.pos)}
    if body.fraction is not None:
        return {"ok": await poller.seek_fraction(player, body.fraction)}
    raise HTTPException(status_code=400, detail="pos or fraction required")

@app.post("/players/{player_id}/playlist")
async def player_playlist(player_id: str):
    return {"ok": await _service().supervisor.select_playlist(_player(player_id))}

# Playlist

@app.post("/playlist/refresh")
async def playlist_refresh():
    return {"ok": await _service().playlist_poller.refresh()}

@app.post("/playlist/play")
async def playlist_play(body: EntryBody):
    return {"ok": await _service().playlist_poller.play(body.name)}

@app.post("/playlist/remove")
async def playlist_remove(body: EntryBody):
    return {"ok": await _service().playlist_poller.remove(body.name)}

# Polling

@app.post("/polling/players")
async def polling_players(body: ToggleBody):
    _service().supervisor.enable_player_polling(body.enabled)
    return {"ok": True}

@app.post("/polling/playlist")
async def polling_playlist(body: ToggleBody):
    _service().supervisor.enable_playlist_polling(body.enabled)
    return {"ok": True}
