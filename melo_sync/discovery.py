import asyncio
import logging
from typing import Any, List, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError
from .clients.rpc_client import RpcClient
from .methods import (
    BrowserGetInfo, ModuleGetBrowserList, ModuleGetInfo, ModuleGetList, ModuleGetPlayerList
)
from .models import Browser, ItemInfo, Module, Player
from .pollers import PlayerPoller
from .state import ResourceRegistry
from .supervisor import PollingSupervisor

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

MODULES = "modules"
MODULE_INFO = "module_info"
BROWSER_INFO = "browser_info"


def _parse_list(model: Type[M], data: Any, **extra) -> Optional[List[M]]:
    if not isinstance(data, list):
        logger.warning(f"Expected a list of {model.__name__}, got {type(data).__name__}")
        return None
    try:
        return [model.model_validate({**item, **extra}) for item in data]
    except (ValidationError, TypeError) as e:
        logger.warning(f"Invalid {model.__name__} list: {e}")
        return None


class ModuleDiscovery:
    """One-shot discovery calls; each one replaces its collection in the registry."""

    def __init__(self, rpc: RpcClient, registry: ResourceRegistry,
                 supervisor: PollingSupervisor, player_poller: PlayerPoller):
        self.rpc = rpc
        self.registry = registry
        self.supervisor = supervisor
        self.player_poller = player_poller

    async def discover_modules(self) -> bool:
        token = self.registry.epochs.advance(MODULES)
        res = await self.rpc.call(ModuleGetList())
        if not res.ok or not self.registry.epochs.is_current(MODULES, token):
            return False
        modules = _parse_list(Module, res.result)
        if modules is None:
            return False

        removed = self.registry.replace_modules(modules)
        self.supervisor.players_replaced(removed, [], settle_playlist=False)
        logger.info(f"Discovered {len(modules)} modules")

        await asyncio.gather(*(self.get_players_of(m.id) for m in modules))

        selection = self.registry.playlist
        if selection is not None and not self.registry.is_live(selection.player):
            self.supervisor.settle_playlist(self.registry.all_players())
        return True

    async def get_module_info(self, module_id: str) -> bool:
        token = self.registry.epochs.advance(MODULE_INFO)
        res = await self.rpc.call(ModuleGetInfo(module_id=module_id))
        if not res.ok:
            return False
        if not self.registry.epochs.is_current(MODULE_INFO, token):
            logger.debug(f"Dropping superseded info of module {module_id}")
            return False
        try:
            self.registry.module_info = ItemInfo.model_validate({**res.result, "id": module_id})
        except (ValidationError, TypeError) as e:
            logger.warning(f"Invalid info for module {module_id}: {e}")
            return False
        return True

    async def get_browsers_of(self, module_id: str) -> bool:
        key = ("browsers", module_id)
        token = self.registry.epochs.advance(key)
        res = await self.rpc.call(ModuleGetBrowserList(module_id=module_id))
        if not res.ok:
            return False
        if not self.registry.epochs.is_current(key, token) or not self.registry.has_module(module_id):
            logger.debug(f"Dropping stale browser list of {module_id}")
            return False
        browsers = _parse_list(Browser, res.result)
        if browsers is None:
            return False
        self.registry.replace_browsers(module_id, browsers)
        return True

    async def get_browser_info(self, browser_id: str) -> bool:
        token = self.registry.epochs.advance(BROWSER_INFO)
        res = await self.rpc.call(BrowserGetInfo(browser_id=browser_id))
        if not res.ok:
            return False
        if not self.registry.epochs.is_current(BROWSER_INFO, token):
            logger.debug(f"Dropping superseded info of browser {browser_id}")
            return False
        try:
            self.registry.browser_info = ItemInfo.model_validate({**res.result, "id": browser_id})
        except (ValidationError, TypeError) as e:
            logger.warning(f"Invalid info for browser {browser_id}: {e}")
            return False
        return True

    async def get_players_of(self, module_id: str) -> bool:
        key = ("players", module_id)
        token = self.registry.epochs.advance(key)
        res = await self.rpc.call(ModuleGetPlayerList(module_id=module_id))
        if not res.ok:
            return False
        if not self.registry.epochs.is_current(key, token) or not self.registry.has_module(module_id):
            logger.debug(f"Dropping stale player list of {module_id}")
            return False
        players = _parse_list(Player, res.result, module_id=module_id)
        if players is None:
            return False

        removed = self.registry.replace_players(module_id, players)
        self.supervisor.players_replaced(removed, players)
        logger.info(f"Module {module_id} has {len(players)} players")

        await asyncio.gather(*(self.player_poller.refresh(p) for p in players))
        return True
