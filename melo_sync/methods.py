"""
Typed JSON-RPC requests, one model per Melo method.

Each request validates its arguments when it is built and knows how to lay
them out as the ordered ``params`` list the service expects.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal

JSONRPC_VERSION = "2.0"
REQUEST_ID = 1

FULL = ["full"]
NAME_ONLY = ["name"]

class RpcRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str

    def params(self) -> List[Any]:
        return []

    def envelope(self, request_id: int = REQUEST_ID) -> Dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "method": self.method,
            "params": self.params(),
            "id": request_id
        }

# Modules

class ModuleGetList(RpcRequest):
    method: Literal["module.get_list"] = "module.get_list"

    def params(self):
        return [FULL]

class ModuleGetInfo(RpcRequest):
    method: Literal["module.get_info"] = "module.get_info"
    module_id: str = Field(min_length=1)

    def params(self):
        return [self.module_id, FULL]

class ModuleGetBrowserList(RpcRequest):
    method: Literal["module.get_browser_list"] = "module.get_browser_list"
    module_id: str = Field(min_length=1)

    def params(self):
        return [self.module_id, NAME_ONLY]

class ModuleGetPlayerList(RpcRequest):
    method: Literal["module.get_player_list"] = "module.get_player_list"
    module_id: str = Field(min_length=1)

    def params(self):
        return [self.module_id, FULL]

# Browsers

class _BrowserPathRequest(RpcRequest):
    browser_id: str = Field(min_length=1)
    path: str

    @field_validator("path")
    @classmethod
    def _absolute(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"browser path must start with '/': {v!r}")
        return v

    def params(self):
        return [self.browser_id, self.path]

class BrowserGetInfo(RpcRequest):
    method: Literal["browser.get_info"] = "browser.get_info"
    browser_id: str = Field(min_length=1)

    def params(self):
        return [self.browser_id, FULL]

class BrowserGetList(_BrowserPathRequest):
    method: Literal["browser.get_list"] = "browser.get_list"

class BrowserAction(_BrowserPathRequest):
    method: Literal["browser.play", "browser.add", "browser.remove"]

    @classmethod
    def build(cls, action: str, browser_id: str, path: str) -> "BrowserAction":
        return cls(method=f"browser.{action}", browser_id=browser_id, path=path)

# Players

class PlayerGetStatus(RpcRequest):
    method: Literal["player.get_status"] = "player.get_status"
    player_id: str = Field(min_length=1)
    tags_ts: int = Field(0, ge=0)

    def params(self):
        return [self.player_id, FULL, FULL, self.tags_ts]

class PlayerSetState(RpcRequest):
    method: Literal["player.set_state"] = "player.set_state"
    player_id: str = Field(min_length=1)
    state: Literal["playing", "paused", "stopped"]

    def params(self):
        return [self.player_id, self.state]

class PlayerStep(RpcRequest):
    method: Literal["player.prev", "player.next"]
    player_id: str = Field(min_length=1)

    @classmethod
    def build(cls, direction: str, player_id: str) -> "PlayerStep":
        return cls(method=f"player.{direction}", player_id=player_id)

    def params(self):
        return [self.player_id]

class PlayerSetPos(RpcRequest):
    method: Literal["player.set_pos"] = "player.set_pos"
    player_id: str = Field(min_length=1)
    pos: int = Field(ge=0)

    def params(self):
        return [self.player_id, self.pos]

# Playlists

class PlaylistGetList(RpcRequest):
    method: Literal["playlist.get_list"] = "playlist.get_list"
    playlist_id: str = Field(min_length=1)

    def params(self):
        return [self.playlist_id]

class PlaylistAction(RpcRequest):
    method: Literal["playlist.play", "playlist.remove"]
    playlist_id: str = Field(min_length=1)
    name: str = Field(min_length=1)

    @classmethod
    def build(cls, action: str, playlist_id: str, name: str) -> "PlaylistAction":
        return cls(method=f"playlist.{action}", playlist_id=playlist_id, name=name)

    def params(self):
        return [self.playlist_id, self.name]
