import logging
from collections import defaultdict
from typing import Any, Dict, Hashable, List, Optional
from .models import (
    Browser, BrowserEntry, BrowserView, ItemInfo, Module, Player, PlaylistSelection
)

logger = logging.getLogger(__name__)

class Epochs:
    """
    Generation counters used to supersede in-flight requests.
    A caller takes a token with advance() before sending and drops the
    response if is_current() no longer holds when it arrives.
    """
    def __init__(self):
        self._values: Dict[Hashable, int] = defaultdict(int)

    def advance(self, key: Hashable) -> int:
        self._values[key] += 1
        return self._values[key]

    def is_current(self, key: Hashable, token: int) -> bool:
        return self._values[key] == token

class ResourceRegistry:
    """In-memory mirror of the remote resources. Holds data only, no timers."""

    def __init__(self):
        self.modules: List[Module] = []
        self.module_info: Optional[ItemInfo] = None
        self.browsers: Dict[str, List[Browser]] = {}
        self.browser_info: Optional[ItemInfo] = None
        self.browser_view = BrowserView()
        self.browser_entries: List[BrowserEntry] = []
        self.players: Dict[str, List[Player]] = {}  # module id -> players
        self.playlist: Optional[PlaylistSelection] = None
        self.epochs = Epochs()

    def has_module(self, module_id: str) -> bool:
        return any(m.id == module_id for m in self.modules)

    def replace_modules(self, modules: List[Module]) -> List[Player]:
        """Swap the module list. Drops every player and cached browser list; returns the dropped players."""
        removed = self.all_players()
        self.modules = list(modules)
        self.players = {}
        self.browsers = {}
        return removed

    def replace_browsers(self, module_id: str, browsers: List[Browser]):
        self.browsers[module_id] = list(browsers)

    def replace_players(self, module_id: str, players: List[Player]) -> List[Player]:
        """Swap the players of one module, returning the previous ones."""
        removed = self.players.get(module_id, [])
        self.players[module_id] = list(players)
        return removed

    def all_players(self) -> List[Player]:
        return [p for players in self.players.values() for p in players]

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.all_players():
            if player.id == player_id:
                return player
        return None

    def is_live(self, player: Player) -> bool:
        """True while this exact player object is still registered."""
        return any(p is player for p in self.players.get(player.module_id, []))

    def snapshot(self) -> Dict[str, Any]:
        return {
            "modules": [m.model_dump() for m in self.modules],
            "module_info": self.module_info.model_dump() if self.module_info else None,
            "browsers": {mid: [b.model_dump() for b in lst] for mid, lst in self.browsers.items()},
            "browser_info": self.browser_info.model_dump() if self.browser_info else None,
            "browser": {
                "view": self.browser_view.model_dump(),
                "entries": [e.model_dump(by_alias=False) for e in self.browser_entries]
            },
            "players": {mid: [p.model_dump() for p in lst] for mid, lst in self.players.items()},
            "playlist": self.playlist.model_dump() if self.playlist else None
        }
