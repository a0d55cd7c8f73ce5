import asyncio
import logging
import signal
import sys
import uvicorn

from .config import settings
from .state import ResourceRegistry
from .clients.rpc_client import RpcClient
from .discovery import ModuleDiscovery
from .navigator import BrowserNavigator
from .pollers import PlayerPoller, PlaylistPoller
from .supervisor import PollingSupervisor
from . import server

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
# Silence noisy libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger("main")

class MeloService:
    def __init__(self, rpc=None):
        self.registry = ResourceRegistry()
        self.rpc = rpc or RpcClient()
        self.player_poller = PlayerPoller(self.rpc, self.registry)
        self.playlist_poller = PlaylistPoller(self.rpc, self.registry, self.player_poller)
        self.supervisor = PollingSupervisor(self.registry, self.player_poller, self.playlist_poller)
        self.discovery = ModuleDiscovery(self.rpc, self.registry, self.supervisor, self.player_poller)
        self.navigator = BrowserNavigator(self.rpc, self.registry)
        self._stopped = asyncio.Event()

        # Link service to server module
        server.service = self

    async def setup(self):
        logger.info(f"Connecting to Melo at {settings.MELO_RPC_URL}")
        if not await self.discovery.discover_modules():
            logger.warning("Module discovery failed, the list stays empty until refreshed")
        self.supervisor.enable_player_polling(settings.PLAYER_POLL_ENABLED)
        self.supervisor.enable_playlist_polling(settings.PLAYLIST_POLL_ENABLED)

    def stop(self):
        self._stopped.set()

    async def start(self):
        await self.setup()

        if settings.HTTP_SERVER_ENABLED:
            config = uvicorn.Config(server.app, host=settings.HTTP_SERVER_HOST,
                                    port=settings.HTTP_SERVER_PORT, log_level="warning")
            task = asyncio.create_task(uvicorn.Server(config).serve())
        else:
            task = asyncio.create_task(self._stopped.wait())

        try:
            await task
        except asyncio.CancelledError:
            pass
        finally:
            self.supervisor.shutdown()
            await self.rpc.close()

def handle_sigterm(sig, frame):
    logger.info("Received SIGTERM, shutting down...")
    sys.exit(0)

def run():
    signal.signal(signal.SIGTERM, handle_sigterm)
    service = MeloService()
    try:
        asyncio.run(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")

if __name__ == "__main__":
    run()
