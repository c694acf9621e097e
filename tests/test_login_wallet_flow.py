import unittest

from fakes import TOKEN, USER_ID, log_in, make_engine

from payout_bot.api.client import ApiError
from payout_bot.states.flows import LoginStates, WalletStates


class LoginFlowTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine, self.store, self.api, self.cache = make_engine()

    async def send(self, text=None, action=None):
        return await self.engine.handle_input(USER_ID, text=text, action=action)

    async def test_login_populates_session(self):
        reply = await self.engine.start_flow(USER_ID, "login")
        self.assertEqual(reply.step, LoginStates.EMAIL.state)
        reply = await self.send("me@example.com")
        self.assertEqual(reply.step, LoginStates.OTP.state)
        self.assertEqual((await self.store.get(USER_ID)).scratch["sid"], "sid-1")

        reply = await self.send("123456")
        self.assertTrue(reply.finished)
        self.assertEqual(
            self.api.calls_to("authenticate"),
            [{"email": "me@example.com", "otp": "123456", "sid": "sid-1"}],
        )
        session = await self.store.get(USER_ID)
        self.assertTrue(session.authenticated)
        self.assertEqual(session.token, TOKEN)
        self.assertEqual(session.organization_id, "org-1")
        self.assertEqual(session.scratch, {})

    async def test_otp_must_be_digits(self):
        await self.engine.start_flow(USER_ID, "login")
        await self.send("me@example.com")
        reply = await self.send("12ab56")
        self.assertEqual(reply.step, LoginStates.OTP.state)
        self.assertEqual(self.api.calls_to("authenticate"), [])

    async def test_invalid_otp_is_explained(self):
        self.api.errors["authenticate"] = ApiError("Invalid OTP provided", status=400)
        await self.engine.start_flow(USER_ID, "login")
        await self.send("me@example.com")
        reply = await self.send("000000")
        self.assertTrue(reply.finished)
        self.assertIn("invalid or has expired", reply.text)
        self.assertFalse((await self.store.get(USER_ID)).authenticated)

    async def test_unknown_email_is_explained(self):
        self.api.errors["request_otp"] = ApiError("User not found", status=404)
        await self.engine.start_flow(USER_ID, "login")
        reply = await self.send("ghost@example.com")
        self.assertTrue(reply.finished)
        self.assertIn("no account", reply.text)

    async def test_already_logged_in(self):
        await log_in(self.store)
        reply = await self.engine.start_flow(USER_ID, "login")
        self.assertTrue(reply.finished)
        self.assertIn("already logged in", reply.text)


class WalletFlowTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine, self.store, self.api, self.cache = make_engine()
        await log_in(self.store)

    async def send(self, text=None, action=None):
        return await self.engine.handle_input(USER_ID, text=text, action=action)

    async def test_set_default_wallet(self):
        reply = await self.engine.start_flow(USER_ID, "wallet", "default")
        self.assertEqual(reply.step, WalletStates.DEFAULT_SELECT.state)
        reply = await self.send("3")
        self.assertEqual(reply.step, WalletStates.DEFAULT_SELECT.state)
        reply = await self.send("2")
        self.assertTrue(reply.finished)
        self.assertEqual(self.api.calls_to("set_default_wallet"), [{"token": TOKEN, "wallet_id": "wallet-2"}])

    async def test_generate_wallet(self):
        reply = await self.engine.start_flow(USER_ID, "wallet", "generate")
        self.assertEqual(reply.step, WalletStates.GENERATE_NETWORK.state)
        reply = await self.send("2")
        self.assertTrue(reply.finished)
        self.assertEqual(self.api.calls_to("generate_wallet"), [{"token": TOKEN, "network_id": "137"}])
        self.assertIn("0x" + "c" * 40, reply.text)

    async def test_no_wallets_aborts(self):
        self.api.wallets = []
        reply = await self.engine.start_flow(USER_ID, "wallet", "default")
        self.assertTrue(reply.finished)
        self.assertIsNone((await self.store.get(USER_ID)).current_step)


if __name__ == "__main__":
    unittest.main()
