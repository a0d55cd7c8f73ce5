import asyncio
import logging
from typing import Optional
from pydantic import ValidationError
from .clients.rpc_client import RpcClient
from .methods import (
    PlayerGetStatus, PlayerSetPos, PlayerSetState, PlayerStep, PlaylistAction, PlaylistGetList
)
from .models import Player, PlayerStatus, PlaylistContents, PlaylistEntry, PlaylistSelection
from .state import ResourceRegistry

logger = logging.getLogger(__name__)


def cursor_width(pos: int, duration: int) -> float:
    """Position indicator width in percent; 0 when the duration is unknown."""
    if not duration:
        return 0.0
    return pos * 100 / duration


def apply_status(player: Player, status: PlayerStatus) -> bool:
    """
    Copies a status response onto the player's panel.
    Tags are only redrawn when their timestamp moves past the player's token.
    Returns True if the tags were updated.
    """
    panel = player.panel
    playing = status.state == "playing"

    panel.state = status.state
    panel.name = status.name or ""
    panel.pos = status.pos
    panel.duration = status.duration
    panel.position = f"{status.pos} / {status.duration}"
    panel.cursor_width = cursor_width(status.pos, status.duration)
    panel.play_pause_label = "Pause" if playing else "Play"
    panel.toggle_state = "paused" if playing else "playing"

    tags = status.tags
    if tags is None or tags.timestamp <= player.last_tags_ts:
        return False

    player.last_tags_ts = tags.timestamp
    panel.title = tags.title or ""
    panel.artist = tags.artist or ""
    panel.album = tags.album or ""
    panel.genre = tags.genre or ""
    panel.date = str(tags.date) if tags.date is not None else ""
    if tags.track is not None or tags.tracks is not None:
        panel.track = f"{tags.track or 0} / {tags.tracks or 0}"
    else:
        panel.track = ""
    if tags.cover:
        panel.cover_src = f"data:{tags.cover_type};base64,{tags.cover}"
    else:
        panel.cover_src = ""
    return True


class PlayerPoller:
    def __init__(self, rpc: RpcClient, registry: ResourceRegistry):
        self.rpc = rpc
        self.registry = registry

    async def refresh(self, player: Player) -> bool:
        async with player.lock:
            res = await self.rpc.call(PlayerGetStatus(player_id=player.id, tags_ts=player.last_tags_ts))
            if not res.ok:
                return False
            if not self.registry.is_live(player):
                logger.debug(f"Dropping status of removed player {player.id}")
                return False
            try:
                status = PlayerStatus.model_validate(res.result)
            except ValidationError as e:
                logger.warning(f"Invalid status for player {player.id}: {e}")
                return False
            if apply_status(player, status):
                logger.debug(f"Tags of {player.id} updated (ts={player.last_tags_ts})")
            return True

    async def poll(self, player: Player):
        """Timer tick: skipped while another call for this player is pending."""
        if player.lock.locked():
            return
        await self.refresh(player)

    async def _command(self, player: Player, request) -> bool:
        async with player.lock:
            res = await self.rpc.call(request)
        if not res.ok:
            return False
        await self.refresh(player)
        return True

    async def set_state(self, player: Player, state: str) -> bool:
        return await self._command(player, PlayerSetState(player_id=player.id, state=state))

    async def toggle(self, player: Player) -> bool:
        return await self.set_state(player, player.panel.toggle_state)

    async def stop(self, player: Player) -> bool:
        return await self.set_state(player, "stopped")

    async def step(self, player: Player, direction: str) -> bool:
        return await self._command(player, PlayerStep.build(direction, player.id))

    async def seek(self, player: Player, pos: int) -> bool:
        return await self._command(player, PlayerSetPos(player_id=player.id, pos=pos))

    async def seek_fraction(self, player: Player, fraction: float) -> bool:
        """Seek to a fraction of the known duration, moving the cursor right away."""
        fraction = min(max(fraction, 0.0), 1.0)
        pos = int(player.panel.duration * fraction)
        player.panel.cursor_width = cursor_width(pos, player.panel.duration)
        return await self.seek(player, pos)


class PlaylistPoller:
    def __init__(self, rpc: RpcClient, registry: ResourceRegistry, player_poller: PlayerPoller):
        self.rpc = rpc
        self.registry = registry
        self.player_poller = player_poller

    def select(self, player: Player) -> Optional[PlaylistSelection]:
        if not player.playlist_id:
            return None
        selection = PlaylistSelection(player=player)
        self.registry.playlist = selection
        return selection

    def rebind(self, player: Player) -> PlaylistSelection:
        """Move the selection to a replacement player, keeping the shown entries."""
        old = self.registry.playlist
        selection = PlaylistSelection(player=player)
        if old is not None:
            selection.current = old.current
            selection.entries = old.entries
        self.registry.playlist = selection
        return selection

    def clear(self):
        self.registry.playlist = None

    async def refresh(self, selection: Optional[PlaylistSelection] = None) -> bool:
        selection = selection or self.registry.playlist
        if selection is None:
            return False

        async with selection.lock:
            res = await self.rpc.call(PlaylistGetList(playlist_id=selection.playlist_id))
            if not res.ok:
                return False
            if self.registry.playlist is not selection:
                logger.debug(f"Dropping playlist {selection.playlist_id}: selection changed")
                return False
            try:
                contents = PlaylistContents.model_validate(res.result)
            except ValidationError as e:
                logger.warning(f"Invalid playlist {selection.playlist_id}: {e}")
                return False

            selection.current = contents.current
            selection.entries = [
                PlaylistEntry(
                    name=item.name,
                    full_name=item.full_name,
                    can_remove=item.can_remove,
                    is_current=item.name == contents.current
                )
                for item in contents.list
            ]
            return True

    async def poll(self):
        selection = self.registry.playlist
        if selection is None or selection.lock.locked():
            return
        await self.refresh(selection)

    async def _action(self, action: str, name: str) -> bool:
        selection = self.registry.playlist
        if selection is None:
            return False
        request = PlaylistAction.build(action, selection.playlist_id, name)
        async with selection.lock:
            res = await self.rpc.call(request)
        if not res.ok:
            return False
        await asyncio.gather(
            self.player_poller.refresh(selection.player),
            self.refresh(selection)
        )
        return True

    async def play(self, name: str) -> bool:
        return await self._action("play", name)

    async def remove(self, name: str) -> bool:
        return await self._action("remove", name)
