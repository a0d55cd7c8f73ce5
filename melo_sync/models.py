import asyncio
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, computed_field
from typing import List, Optional, Union

NAVIGABLE_TYPES = ("directory", "category")


def format_name(name: str, full_name: Optional[str]) -> str:
    if full_name is not None:
        return f"{full_name} ({name})"
    return name


class Module(BaseModel):
    id: str
    name: str = ""
    description: Optional[str] = None

class Browser(BaseModel):
    id: str
    name: str = ""
    description: Optional[str] = None

class ItemInfo(BaseModel):
    """Details returned by module.get_info / browser.get_info."""
    id: str = ""
    name: str = ""
    description: Optional[str] = None

class BrowserView(BaseModel):
    current_id: str = ""
    current_path: str = ""

class BrowserEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    full_name: Optional[str] = None
    type: str = ""
    add_label: Optional[str] = Field(None, alias="add")
    remove_label: Optional[str] = Field(None, alias="remove")
    parent: str = ""  # path of the listing this entry belongs to

    @computed_field
    @property
    def display_name(self) -> str:
        return format_name(self.name, self.full_name)

    @computed_field
    @property
    def navigable(self) -> bool:
        return self.type in NAVIGABLE_TYPES

    @computed_field
    @property
    def path(self) -> str:
        return self.parent + self.name

    @computed_field
    @property
    def child_path(self) -> str:
        return self.parent + self.name + "/"

class Tags(BaseModel):
    timestamp: int = 0
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    date: Optional[Union[str, int]] = None
    track: Optional[int] = None
    tracks: Optional[int] = None
    cover: Optional[str] = None       # base64 encoded image
    cover_type: Optional[str] = None  # MIME type of cover

class PlayerStatus(BaseModel):
    state: str = "none"
    name: Optional[str] = None
    pos: int = 0
    duration: int = 0
    tags: Optional[Tags] = None

class PlayerPanel(BaseModel):
    """Rendered fields of one player, as shown by the UI."""
    state: str = ""
    name: str = ""
    pos: int = 0
    duration: int = 0
    position: str = ""
    cursor_width: float = 0.0  # percent
    play_pause_label: str = "Play"
    toggle_state: str = "playing"
    title: str = ""
    artist: str = ""
    album: str = ""
    genre: str = ""
    date: str = ""
    track: str = ""
    cover_src: str = ""

class Player(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    module_id: str = ""
    playlist_id: Optional[str] = Field(None, alias="playlist")
    last_tags_ts: int = 0  # highest tags timestamp already rendered
    panel: PlayerPanel = Field(default_factory=PlayerPanel)

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

class PlaylistEntry(BaseModel):
    name: str
    full_name: Optional[str] = None
    is_current: bool = False
    can_remove: bool = False

    @computed_field
    @property
    def display_name(self) -> str:
        return format_name(self.name, self.full_name)

class PlaylistSelection(BaseModel):
    player: Player = Field(exclude=True)
    current: Optional[str] = None
    entries: List[PlaylistEntry] = Field(default_factory=list)

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    @computed_field
    @property
    def player_id(self) -> str:
        return self.player.id

    @computed_field
    @property
    def playlist_id(self) -> str:
        return self.player.playlist_id or ""

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

# Raw shapes of list results

class PlaylistItem(BaseModel):
    name: str
    full_name: Optional[str] = None
    can_remove: bool = False

class PlaylistContents(BaseModel):
    current: Optional[str] = None
    list: List[PlaylistItem] = Field(default_factory=list)
