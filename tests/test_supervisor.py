import asyncio
import unittest
from fakes import FakeRpc, add_players
from melo_sync.discovery import ModuleDiscovery
from melo_sync.models import Player
from melo_sync.pollers import PlayerPoller, PlaylistPoller
from melo_sync.state import ResourceRegistry
from melo_sync.supervisor import PollingSupervisor, PollTimer

INTERVAL = 0.02

class TestPollTimer(unittest.IsolatedAsyncioTestCase):
    async def test_start_is_idempotent(self):
        calls = []

        async def tick():
            calls.append(1)

        timer = PollTimer("t", tick, INTERVAL)
        timer.start()
        task = timer._task
        timer.start()
        self.assertIs(timer._task, task)
        await asyncio.sleep(INTERVAL * 5)
        timer.stop()
        self.assertFalse(timer.running)
        self.assertGreaterEqual(len(calls), 1)

    async def test_failing_tick_keeps_timer_alive(self):
        async def tick():
            raise RuntimeError("boom")

        timer = PollTimer("t", tick, INTERVAL)
        with self.assertLogs("melo_sync.supervisor", level="ERROR"):
            timer.start()
            await asyncio.sleep(INTERVAL * 6)
        self.assertTrue(timer.running)
        self.assertGreaterEqual(timer.ticks, 2)
        timer.stop()

class SupervisorTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.rpc = FakeRpc()
        self.registry = ResourceRegistry()
        self.player_poller = PlayerPoller(self.rpc, self.registry)
        self.playlist_poller = PlaylistPoller(self.rpc, self.registry, self.player_poller)
        self.supervisor = PollingSupervisor(self.registry, self.player_poller, self.playlist_poller,
                                            interval=INTERVAL)
        self.discovery = ModuleDiscovery(self.rpc, self.registry, self.supervisor, self.player_poller)
        self.rpc.on("player.get_status", {"state": "stopped", "pos": 0, "duration": 0})
        self.rpc.on("playlist.get_list", lambda params: {"current": None, "list": [{"name": params[0]}]})

    async def asyncTearDown(self):
        self.supervisor.shutdown()

    def status_calls(self, player_id):
        return [p for p in self.rpc.calls_to("player.get_status") if p[0] == player_id]

class TestPlayerDomain(SupervisorTestCase):
    def setUp(self):
        super().setUp()
        self.p1 = Player(id="p1", playlist_id="pl1")
        self.p2 = Player(id="p2")
        add_players(self.registry, "m1", self.p1, self.p2)

    async def test_enable_twice_keeps_one_timer_per_player(self):
        loop = asyncio.get_running_loop()
        start = loop.time()
        self.supervisor.enable_player_polling(True)
        t1 = self.supervisor.timer_for("p1")
        self.supervisor.enable_player_polling(True)

        self.assertIs(self.supervisor.timer_for("p1"), t1)
        self.assertEqual(self.supervisor.running_timers, 2)

        await asyncio.sleep(INTERVAL * 10)
        elapsed = loop.time() - start

        # Each tick waits a full interval first, so one timer fits at most
        # elapsed / INTERVAL ticks; a second timer would double the count.
        max_ticks = int(elapsed / INTERVAL)
        for player_id in ("p1", "p2"):
            ticks = len(self.status_calls(player_id))
            self.assertGreaterEqual(ticks, 1)
            self.assertLessEqual(ticks, max_ticks)

    async def test_disable_stops_all_timers(self):
        self.supervisor.enable_player_polling(True)
        timers = [self.supervisor.timer_for("p1"), self.supervisor.timer_for("p2")]
        self.supervisor.enable_player_polling(False)

        self.assertIsNone(self.supervisor.timer_for("p1"))
        self.assertTrue(all(not t.running for t in timers))
        await asyncio.sleep(INTERVAL * 3)
        self.assertEqual(self.rpc.calls_to("player.get_status"), [])

    async def test_replaced_players_get_new_timers(self):
        self.supervisor.enable_player_polling(True)
        old_timer = self.supervisor.timer_for("p1")
        p1b = Player(id="p1", module_id="m1")
        removed = self.registry.replace_players("m1", [p1b])
        self.supervisor.players_replaced(removed, [p1b])

        self.assertFalse(old_timer.running)
        self.assertIsNone(self.supervisor.timer_for("p2"))
        self.assertIsNot(self.supervisor.timer_for("p1"), old_timer)
        self.assertTrue(self.supervisor.timer_for("p1").running)

    async def test_no_timers_while_disabled(self):
        p3 = Player(id="p3", module_id="m1")
        self.supervisor.players_replaced([], [p3])
        self.assertIsNone(self.supervisor.timer_for("p3"))

class TestPlaylistDomain(SupervisorTestCase):
    def setUp(self):
        super().setUp()
        self.p1 = Player(id="p1", playlist_id="pl1")
        self.p2 = Player(id="p2", playlist_id="pl2")
        add_players(self.registry, "m1", self.p1, self.p2)

    async def test_enable_without_selection(self):
        self.supervisor.enable_playlist_polling(True)
        self.assertIsNone(self.supervisor.playlist_timer)

        self.assertTrue(await self.supervisor.select_playlist(self.p1))
        self.assertTrue(self.supervisor.playlist_timer.running)

    async def test_switching_selection_retargets_single_timer(self):
        await self.supervisor.select_playlist(self.p1)
        self.supervisor.enable_playlist_polling(True)
        timer = self.supervisor.playlist_timer

        await self.supervisor.select_playlist(self.p2)
        self.assertIs(self.supervisor.playlist_timer, timer)
        self.assertEqual(self.supervisor.running_timers, 1)

        self.rpc.calls.clear()
        await asyncio.sleep(INTERVAL * 5)
        targets = {p[0] for p in self.rpc.calls_to("playlist.get_list")}
        self.assertEqual(targets, {"pl2"})

    async def test_enable_disable_symmetric(self):
        await self.supervisor.select_playlist(self.p1)
        self.supervisor.enable_playlist_polling(True)
        timer = self.supervisor.playlist_timer
        self.supervisor.enable_playlist_polling(True)
        self.assertIs(self.supervisor.playlist_timer, timer)

        self.supervisor.enable_playlist_polling(False)
        self.assertIsNone(self.supervisor.playlist_timer)
        self.assertFalse(timer.running)

    async def test_removed_player_closes_playlist(self):
        await self.supervisor.select_playlist(self.p1)
        self.supervisor.enable_playlist_polling(True)

        removed = self.registry.replace_players("m1", [self.p2])
        self.supervisor.players_replaced(removed, [self.p2])

        self.assertIsNone(self.registry.playlist)
        self.assertIsNone(self.supervisor.playlist_timer)

class TestRediscovery(SupervisorTestCase):
    def setUp(self):
        super().setUp()
        self.modules = [{"id": "m1", "name": "One"}, {"id": "m2", "name": "Two"}]
        self.rpc.on("module.get_list", lambda params: self.modules)
        self.rpc.on("module.get_player_list",
                    lambda params: [{"id": "p-" + params[0], "playlist": "pl-" + params[0]}])

    async def test_smaller_module_set_drops_players(self):
        await self.discovery.discover_modules()
        self.supervisor.enable_player_polling(True)
        old_p2_timer = self.supervisor.timer_for("p-m2")
        self.assertTrue(old_p2_timer.running)

        self.modules = [{"id": "m1", "name": "One"}]
        self.assertTrue(await self.discovery.discover_modules())

        self.assertFalse(old_p2_timer.running)
        self.assertIsNone(self.supervisor.timer_for("p-m2"))
        self.assertIsNone(self.registry.get_player("p-m2"))
        self.assertEqual([m.id for m in self.registry.modules], ["m1"])
        self.assertTrue(self.supervisor.timer_for("p-m1").running)

    async def test_rediscovery_recreates_every_timer(self):
        await self.discovery.discover_modules()
        self.supervisor.enable_player_polling(True)
        old = self.supervisor.timer_for("p-m1")

        await self.discovery.discover_modules()
        self.assertFalse(old.running)
        self.assertIsNot(self.supervisor.timer_for("p-m1"), old)
        self.assertIs(self.registry.get_player("p-m1"), self.registry.players["m1"][0])

    async def test_rediscovery_keeps_playlist_of_returning_player(self):
        await self.discovery.discover_modules()
        await self.supervisor.select_playlist(self.registry.get_player("p-m1"))
        self.supervisor.enable_playlist_polling(True)
        timer = self.supervisor.playlist_timer

        await self.discovery.discover_modules()
        selection = self.registry.playlist
        self.assertIsNotNone(selection)
        self.assertIs(selection.player, self.registry.get_player("p-m1"))
        self.assertEqual(selection.playlist_id, "pl-m1")
        self.assertIs(self.supervisor.playlist_timer, timer)
        self.assertTrue(timer.running)

    async def test_rediscovery_clears_playlist_of_vanished_player(self):
        await self.discovery.discover_modules()
        await self.supervisor.select_playlist(self.registry.get_player("p-m2"))
        self.supervisor.enable_playlist_polling(True)
        timer = self.supervisor.playlist_timer

        self.modules = [{"id": "m1", "name": "One"}]
        await self.discovery.discover_modules()
        self.assertIsNone(self.registry.playlist)
        self.assertIsNone(self.supervisor.playlist_timer)
        self.assertFalse(timer.running)

    async def test_newer_module_info_supersedes_older(self):
        gate = asyncio.Event()

        async def info(params):
            if params[0] == "m1":
                await gate.wait()
            return {"name": params[0]}

        self.rpc.on("module.get_info", info)
        first = asyncio.create_task(self.discovery.get_module_info("m1"))
        await asyncio.sleep(0)
        self.assertTrue(await self.discovery.get_module_info("m2"))
        gate.set()

        self.assertFalse(await first)
        self.assertEqual(self.registry.module_info.id, "m2")

    async def test_newer_browser_info_supersedes_older(self):
        gate = asyncio.Event()

        async def info(params):
            if params[0] == "b1":
                await gate.wait()
            return {"name": params[0]}

        self.rpc.on("browser.get_info", info)
        first = asyncio.create_task(self.discovery.get_browser_info("b1"))
        await asyncio.sleep(0)
        self.assertTrue(await self.discovery.get_browser_info("b2"))
        gate.set()

        self.assertFalse(await first)
        self.assertEqual(self.registry.browser_info.id, "b2")

    async def test_newer_browser_list_supersedes_older(self):
        gate = asyncio.Event()
        replies = [[{"id": "old", "name": "Old"}], [{"id": "new", "name": "New"}]]

        async def browsers(params):
            reply = replies.pop(0)
            if reply[0]["id"] == "old":
                await gate.wait()
            return reply

        self.rpc.on("module.get_browser_list", browsers)
        await self.discovery.discover_modules()
        first = asyncio.create_task(self.discovery.get_browsers_of("m1"))
        await asyncio.sleep(0)
        self.assertTrue(await self.discovery.get_browsers_of("m1"))
        gate.set()

        self.assertFalse(await first)
        self.assertEqual([b.id for b in self.registry.browsers["m1"]], ["new"])

    async def test_player_refetch_rebinds_playlist(self):
        await self.discovery.discover_modules()
        await self.supervisor.select_playlist(self.registry.get_player("p-m1"))

        await self.discovery.get_players_of("m1")
        selection = self.registry.playlist
        self.assertIs(selection.player, self.registry.get_player("p-m1"))
        self.assertEqual(selection.playlist_id, "pl-m1")

    async def test_failed_discovery_keeps_modules(self):
        await self.discovery.discover_modules()
        self.rpc.on("module.get_list", FakeRpc.error())

        self.assertFalse(await self.discovery.discover_modules())
        self.assertEqual(len(self.registry.modules), 2)
        self.assertEqual(len(self.registry.all_players()), 2)

    async def test_player_list_for_unknown_module_is_dropped(self):
        await self.discovery.discover_modules()
        self.assertFalse(await self.discovery.get_players_of("m9"))
        self.assertNotIn("m9", self.registry.players)

    async def test_info_and_browsers(self):
        self.rpc.on("module.get_info", {"name": "One", "description": "First module"})
        self.rpc.on("module.get_browser_list", [{"id": "b1", "name": "Files"}])
        self.rpc.on("browser.get_info", {"name": "Files", "description": "Local files"})
        await self.discovery.discover_modules()

        self.assertTrue(await self.discovery.get_module_info("m1"))
        self.assertEqual(self.registry.module_info.description, "First module")
        self.assertTrue(await self.discovery.get_browsers_of("m1"))
        self.assertEqual(self.rpc.calls_to("module.get_browser_list"), [["m1", ["name"]]])
        self.assertEqual([b.id for b in self.registry.browsers["m1"]], ["b1"])
        self.assertTrue(await self.discovery.get_browser_info("b1"))
        self.assertEqual(self.registry.browser_info.id, "b1")

        await self.discovery.discover_modules()
        self.assertEqual(self.registry.browsers, {})

if __name__ == '__main__':
    unittest.main()
