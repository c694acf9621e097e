import asyncio
import unittest

from fakes import USER_ID, FakeApi, log_in, make_engine

from payout_bot.states.flows import SendStates


class PausingApi(FakeApi):
    """Holds ``list_balances`` open until the test releases it."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_balances(self, token):
        self.entered.set()
        await self.release.wait()
        return await super().list_balances(token)


class EngineSerializationTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.api = PausingApi()
        self.engine, self.store, _, self.cache = make_engine(self.api)
        await log_in(self.store)

    async def test_logout_is_not_overwritten_by_running_step(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        step = asyncio.create_task(self.engine.handle_input(USER_ID, text="alice@example.com"))
        await self.api.entered.wait()

        logout = asyncio.create_task(self.engine.logout(USER_ID))
        await asyncio.sleep(0)
        self.assertFalse(logout.done())

        self.api.release.set()
        reply = await step
        await logout

        self.assertEqual(reply.step, SendStates.NETWORK.state)
        session = await self.store.get(USER_ID)
        self.assertFalse(session.authenticated)
        self.assertIsNone(session.token)
        self.assertIsNone(session.current_step)
        self.assertIsNone(self.cache.get(USER_ID))

    async def test_locks_are_released_after_use(self):
        self.api.release.set()
        await self.engine.start_flow(USER_ID, "send", "email")
        await self.engine.handle_input(USER_ID, text="alice@example.com")
        await self.engine.logout(USER_ID)
        self.assertEqual(self.engine._locks, {})

    async def test_waiting_event_keeps_the_lock_alive(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        first = asyncio.create_task(self.engine.handle_input(USER_ID, text="alice@example.com"))
        await self.api.entered.wait()
        second = asyncio.create_task(self.engine.cancel(USER_ID))
        await asyncio.sleep(0)
        self.assertEqual(self.engine._locks[USER_ID].holders, 2)

        self.api.release.set()
        await first
        reply = await second
        self.assertTrue(reply.finished)
        self.assertEqual(self.engine._locks, {})


if __name__ == "__main__":
    unittest.main()
