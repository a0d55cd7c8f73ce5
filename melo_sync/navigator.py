import logging
from typing import Optional
from pydantic import ValidationError
from .clients.rpc_client import RpcClient
from .config import settings
from .methods import BrowserAction, BrowserGetList
from .models import BrowserEntry, BrowserView
from .state import ResourceRegistry

logger = logging.getLogger(__name__)

FOCUS = "browser"


def parent_path(path: str) -> Optional[str]:
    """
    Parent of a directory path ("/a/b/" -> "/a/").
    The separator is searched before the final character, so the root
    has no parent and None is returned.
    """
    n = path.rfind("/", 0, len(path) - 1)
    if n == -1:
        return None
    return path[:n + 1]


class BrowserNavigator:
    """Walks one browser at a time; the registry holds the open view."""

    def __init__(self, rpc: RpcClient, registry: ResourceRegistry):
        self.rpc = rpc
        self.registry = registry

    @property
    def view(self) -> BrowserView:
        return self.registry.browser_view

    async def open(self, browser_id: str, path: Optional[str] = None) -> bool:
        path = path if path is not None else settings.BROWSER_ROOT_PATH
        request = BrowserGetList(browser_id=browser_id, path=path)

        token = self.registry.epochs.advance(FOCUS)
        res = await self.rpc.call(request)
        if not res.ok:
            return False
        if not self.registry.epochs.is_current(FOCUS, token):
            logger.debug(f"Dropping listing of {browser_id}:{path}, superseded")
            return False
        if not isinstance(res.result, list):
            logger.warning(f"Invalid listing of {browser_id}:{path}")
            return False
        try:
            entries = [BrowserEntry.model_validate({**item, "parent": path}) for item in res.result]
        except (ValidationError, TypeError) as e:
            logger.warning(f"Invalid listing of {browser_id}:{path}: {e}")
            return False

        self.registry.browser_view = BrowserView(current_id=browser_id, current_path=path)
        self.registry.browser_entries = entries
        return True

    async def reload(self) -> bool:
        if not self.view.current_id:
            return False
        return await self.open(self.view.current_id, self.view.current_path)

    async def ascend(self) -> bool:
        parent = parent_path(self.view.current_path)
        if parent is None:
            return False
        return await self.open(self.view.current_id, parent)

    async def act(self, kind: str, path: str) -> bool:
        """Runs browser.<kind> on a path of the open browser; remove reloads the view."""
        res = await self.rpc.call(BrowserAction.build(kind, self.view.current_id, path))
        if not res.ok:
            return False
        if kind == "remove":
            await self.reload()
        return True

    async def select(self, entry: BrowserEntry) -> bool:
        if entry.navigable:
            return await self.open(self.view.current_id, entry.child_path)
        return await self.act("play", entry.path)

    async def act_on(self, entry: BrowserEntry, kind: str) -> bool:
        """Add or remove an entry, if the browser offers that action for it."""
        if kind == "add" and entry.add_label is not None:
            return await self.act("add", entry.path)
        if kind == "remove" and entry.remove_label is not None:
            return await self.act("remove", entry.child_path)
        return False

    def find_entry(self, name: str) -> Optional[BrowserEntry]:
        return next((e for e in self.registry.browser_entries if e.name == name), None)
