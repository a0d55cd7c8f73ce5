import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional
from .config import settings
from .models import Player
from .pollers import PlayerPoller, PlaylistPoller
from .state import ResourceRegistry

logger = logging.getLogger(__name__)

class PollTimer:
    """Runs `callback` every `interval` seconds on the event loop until stopped."""

    def __init__(self, name: str, callback: Callable[[], Awaitable[None]], interval: float):
        self.name = name
        self.callback = callback
        self.interval = interval
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"poll:{self.name}")

    def stop(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            self.ticks += 1
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in poll timer {self.name}: {e}", exc_info=True)

class PollingSupervisor:
    """
    Owns every poll timer: one per player while player polling is on,
    and one for the open playlist while playlist polling is on.
    """

    def __init__(self, registry: ResourceRegistry, player_poller: PlayerPoller,
                 playlist_poller: PlaylistPoller, interval: Optional[float] = None):
        self.registry = registry
        self.player_poller = player_poller
        self.playlist_poller = playlist_poller
        self.interval = interval if interval is not None else settings.POLL_INTERVAL_SECONDS
        self.player_polling = False
        self.playlist_polling = False
        self._player_timers: Dict[str, PollTimer] = {}
        self._playlist_timer: Optional[PollTimer] = None

    # Player domain

    def timer_for(self, player_id: str) -> Optional[PollTimer]:
        return self._player_timers.get(player_id)

    @property
    def running_timers(self) -> int:
        count = sum(1 for t in self._player_timers.values() if t.running)
        if self._playlist_timer is not None and self._playlist_timer.running:
            count += 1
        return count

    def enable_player_polling(self, enabled: bool):
        self.player_polling = enabled
        if enabled:
            for player in self.registry.all_players():
                self._start_player_timer(player)
        else:
            for timer in self._player_timers.values():
                timer.stop()
            self._player_timers = {}
        logger.info(f"Player polling {'enabled' if enabled else 'disabled'}")

    def _start_player_timer(self, player: Player):
        if player.id in self._player_timers:
            return
        timer = PollTimer(f"player:{player.id}", lambda: self.player_poller.poll(player), self.interval)
        self._player_timers[player.id] = timer
        timer.start()

    def _stop_player_timer(self, player: Player):
        timer = self._player_timers.pop(player.id, None)
        if timer is not None:
            timer.stop()

    def players_replaced(self, removed: List[Player], added: List[Player], settle_playlist: bool = True):
        """
        Tear down timers of dropped players, then start timers for the new set.
        With settle_playlist=False a selection bound to a dropped player is left
        for the caller to settle once the replacement players are known.
        """
        for player in removed:
            self._stop_player_timer(player)

        selection = self.registry.playlist
        if settle_playlist and selection is not None and any(p is selection.player for p in removed):
            self.settle_playlist(added)

        if self.player_polling:
            for player in added:
                self._start_player_timer(player)

    def settle_playlist(self, candidates: List[Player]):
        """Rebind the selection to the candidate with the same id and playlist, or close it."""
        selection = self.registry.playlist
        if selection is None:
            return
        replacement = next(
            (p for p in candidates
             if p.id == selection.player_id and p.playlist_id == selection.playlist_id),
            None
        )
        if replacement is not None:
            self.playlist_poller.rebind(replacement)
        else:
            logger.info(f"Playlist of {selection.player_id} closed: player is gone")
            self.clear_playlist()

    # Playlist domain

    def enable_playlist_polling(self, enabled: bool):
        self.playlist_polling = enabled
        if enabled:
            if self.registry.playlist is not None:
                self._start_playlist_timer()
        else:
            self._stop_playlist_timer()
        logger.info(f"Playlist polling {'enabled' if enabled else 'disabled'}")

    def _start_playlist_timer(self):
        if self._playlist_timer is None:
            # Target is read from the registry on every tick
            self._playlist_timer = PollTimer("playlist", self.playlist_poller.poll, self.interval)
        self._playlist_timer.start()

    def _stop_playlist_timer(self):
        if self._playlist_timer is not None:
            self._playlist_timer.stop()
            self._playlist_timer = None

    @property
    def playlist_timer(self) -> Optional[PollTimer]:
        return self._playlist_timer

    async def select_playlist(self, player: Player) -> bool:
        selection = self.playlist_poller.select(player)
        if selection is None:
            return False
        if self.playlist_polling:
            self._start_playlist_timer()
        return await self.playlist_poller.refresh(selection)

    def clear_playlist(self):
        self._stop_playlist_timer()
        self.playlist_poller.clear()

    def shutdown(self):
        for timer in self._player_timers.values():
            timer.stop()
        self._player_timers = {}
        self._stop_playlist_timer()
        logger.info("Polling stopped")
