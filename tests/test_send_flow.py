import unittest

from fakes import USER_ID, log_in, make_engine

from payout_bot.api.client import ApiError, AuthExpiredError, PayoutsApiClient
from payout_bot.models.entities import TokenBalance, WalletBalance
from payout_bot.services.amounts import to_base_units
from payout_bot.states.flows import SendStates

EVM_ADDRESS = "0x" + "a" * 40


class CannedResponseClient(PayoutsApiClient):
    def __init__(self, body):
        super().__init__("http://api.test")
        self.body = body

    async def _request(self, method, path, **kwargs):
        return self.body


class SendFlowTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine, self.store, self.api, self.cache = make_engine()
        await log_in(self.store)

    async def send(self, text=None, action=None):
        return await self.engine.handle_input(USER_ID, text=text, action=action)

    async def session(self):
        return await self.store.get(USER_ID)

    async def test_email_transfer_end_to_end(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        await self.send("alice@example.com")
        await self.send("1")
        await self.send("1")
        await self.send("5")
        await self.send("skip")
        reply = await self.send(action="confirm")

        self.assertTrue(reply.finished)
        calls = self.api.calls_to("send_email_transfer")
        self.assertEqual(len(calls), 1)
        self.assertEqual(calls[0]["amount"], to_base_units("5"))
        self.assertEqual(calls[0]["receiver_email"], "alice@example.com")
        self.assertEqual(calls[0]["currency"], "USDC")
        self.assertIsNone(calls[0]["note"])
        session = await self.session()
        self.assertEqual(session.scratch, {})
        self.assertIsNone(session.current_step)
        self.assertIn("tx-1", reply.text)

    async def test_steps_advance_in_order_on_valid_input(self):
        steps = [(await self.engine.start_flow(USER_ID, "send", "email")).step]
        for text in ("alice@example.com", "1", "1", "5", "thanks"):
            steps.append((await self.send(text)).step)
        self.assertEqual(
            steps,
            [
                SendStates.EMAIL_RECIPIENT.state,
                SendStates.NETWORK.state,
                SendStates.TOKEN.state,
                SendStates.AMOUNT.state,
                SendStates.NOTE.state,
                SendStates.CONFIRM.state,
            ],
        )
        self.assertEqual((await self.session()).scratch["note"], "thanks")

    async def test_typed_confirm_submits(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        for text in ("alice@example.com", "1", "1", "5", "skip"):
            await self.send(text)
        reply = await self.send("Confirm")
        self.assertTrue(reply.finished)
        self.assertEqual(len(self.api.calls_to("send_email_transfer")), 1)

    async def test_invalid_email_reprompts(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        reply = await self.send("alice.example.com")
        self.assertEqual(reply.step, SendStates.EMAIL_RECIPIENT.state)
        self.assertEqual(self.api.calls_to("list_balances"), [])

    async def test_out_of_range_selection_keeps_step_and_scratch(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        await self.send("alice@example.com")
        before = dict((await self.session()).scratch)
        for text in ("0", "2", "abc", "-1", "1.0"):
            reply = await self.send(text)
            self.assertEqual(reply.step, SendStates.NETWORK.state)
            self.assertIn("from 1 to 1", reply.text)
            self.assertEqual((await self.session()).scratch, before)

    async def test_cancel_clears_scratch(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        await self.send("alice@example.com")
        reply = await self.send(action="cancel")
        self.assertTrue(reply.finished)
        session = await self.session()
        self.assertEqual(session.scratch, {})
        self.assertIsNone(session.current_step)
        self.assertEqual(self.api.calls_to("send_email_transfer"), [])

    async def test_cancel_command_clears_scratch(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        await self.send("alice@example.com")
        reply = await self.engine.cancel(USER_ID)
        self.assertTrue(reply.finished)
        self.assertEqual((await self.session()).scratch, {})

    async def test_email_typo_suggestion_does_not_block(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        reply = await self.send("bob@gmial.com")
        self.assertEqual(reply.step, SendStates.NETWORK.state)
        self.assertIn("bob@gmail.com", reply.text)
        self.assertIn("use_suggestion", [action for _, action in reply.buttons])

        reply = await self.send(action="use_suggestion")
        self.assertEqual(reply.step, SendStates.NETWORK.state)
        self.assertEqual((await self.session()).scratch["recipient_email"], "bob@gmail.com")

    async def test_typo_kept_when_user_picks_network(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        await self.send("bob@gmial.com")
        await self.send("1")
        scratch = (await self.session()).scratch
        self.assertEqual(scratch["recipient_email"], "bob@gmial.com")
        self.assertNotIn("email_suggestion", scratch)

    async def test_large_amount_requires_confirmation(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        for text in ("alice@example.com", "1", "1"):
            await self.send(text)
        reply = await self.send("150")
        self.assertEqual(reply.step, SendStates.LARGE_AMOUNT.state)
        reply = await self.send("ok")
        self.assertEqual(reply.step, SendStates.LARGE_AMOUNT.state)
        reply = await self.send(action="large_confirm")
        self.assertEqual(reply.step, SendStates.NOTE.state)

    async def test_amount_validation(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        for text in ("alice@example.com", "1", "1"):
            await self.send(text)
        for text in ("abc", "0", "-5", "1.123456789", "2000000"):
            reply = await self.send(text)
            self.assertEqual(reply.step, SendStates.AMOUNT.state)
        self.assertNotIn("amount", (await self.session()).scratch)

    async def test_api_failure_aborts_with_classified_message(self):
        self.api.errors["send_email_transfer"] = ApiError("Insufficient balance for transfer", status=400)
        await self.engine.start_flow(USER_ID, "send", "email")
        for text in ("alice@example.com", "1", "1", "5", "skip"):
            await self.send(text)
        reply = await self.send(action="confirm")
        self.assertTrue(reply.finished)
        self.assertIn("balance is too low", reply.text)
        session = await self.session()
        self.assertEqual(session.scratch, {})
        self.assertIsNone(session.current_step)
        self.assertTrue(session.authenticated)

    async def test_malformed_balances_response_aborts(self):
        self.engine.api = CannedResponseClient([{"network": "137", "balances": 5}])
        await self.engine.start_flow(USER_ID, "send", "email")
        reply = await self.send("alice@example.com")
        self.assertTrue(reply.finished)
        self.assertIn("malformed response", reply.text)
        session = await self.session()
        self.assertIsNone(session.current_step)
        self.assertEqual(session.scratch, {})
        self.assertTrue(session.authenticated)

    async def test_rejected_token_logs_out(self):
        self.api.errors["list_balances"] = AuthExpiredError("Unauthorized", status=401)
        await self.engine.start_flow(USER_ID, "send", "email")
        reply = await self.send("alice@example.com")
        self.assertTrue(reply.finished)
        self.assertIn("/login", reply.text)
        session = await self.session()
        self.assertFalse(session.authenticated)
        self.assertIsNone(session.token)
        self.assertIsNone(session.current_step)

    async def test_successful_transfer_invalidates_balance_cache(self):
        await self.engine.start_flow(USER_ID, "send", "email")
        await self.send("alice@example.com")
        self.assertIsNotNone(self.cache.get(USER_ID))
        for text in ("1", "1", "5", "skip"):
            await self.send(text)
        await self.send(action="confirm")
        self.assertIsNone(self.cache.get(USER_ID))

    async def test_requires_login(self):
        await self.store.clear(USER_ID)
        reply = await self.engine.start_flow(USER_ID, "send", "email")
        self.assertTrue(reply.finished)
        self.assertIn("/login", reply.text)
        self.assertIsNone((await self.session()).current_step)

    async def test_no_active_flow_returns_none(self):
        self.assertIsNone(await self.send("hello"))


class WalletSendTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine, self.store, self.api, self.cache = make_engine()
        self.api.balances.append(WalletBalance(network="solana", tokens=[TokenBalance(symbol="USDC", balance="10")]))
        await log_in(self.store)
        await self.engine.start_flow(USER_ID, "send", "wallet")

    async def send(self, text=None, action=None):
        return await self.engine.handle_input(USER_ID, text=text, action=action)

    async def test_address_valid_on_no_network_reprompts(self):
        reply = await self.send("notanaddress")
        self.assertEqual(reply.step, SendStates.WALLET_RECIPIENT.state)
        self.assertNotIn("recipient_address", (await self.store.get(USER_ID)).scratch)

    async def test_networks_are_annotated(self):
        reply = await self.send(EVM_ADDRESS)
        self.assertEqual(reply.step, SendStates.NETWORK.state)
        self.assertIn("✅", reply.text)
        self.assertIn("⚠️", reply.text)

    async def test_valid_network_goes_straight_to_token(self):
        await self.send(EVM_ADDRESS)
        reply = await self.send("1")
        self.assertEqual(reply.step, SendStates.TOKEN.state)

    async def test_mismatched_network_warns_and_can_continue(self):
        await self.send(EVM_ADDRESS)
        reply = await self.send("2")
        self.assertEqual(reply.step, SendStates.ADDRESS_WARNING.state)
        self.assertEqual(
            [action for _, action in reply.buttons],
            ["continue", "reenter", "cancel"],
        )
        reply = await self.send(action="continue")
        self.assertEqual(reply.step, SendStates.TOKEN.state)
        self.assertEqual((await self.store.get(USER_ID)).scratch["network"], "solana")

    async def test_reenter_returns_to_address_step(self):
        await self.send(EVM_ADDRESS)
        await self.send("2")
        reply = await self.send(action="reenter")
        self.assertEqual(reply.step, SendStates.WALLET_RECIPIENT.state)
        self.assertNotIn("recipient_address", (await self.store.get(USER_ID)).scratch)

    async def test_wallet_transfer_end_to_end(self):
        for text in (EVM_ADDRESS, "1", "1", "12.5", "rent"):
            await self.send(text)
        reply = await self.send(action="confirm")
        self.assertTrue(reply.finished)
        calls = self.api.calls_to("send_wallet_transfer")
        self.assertEqual(len(calls), 1)
        self.assertEqual(calls[0]["amount"], "1250000000")
        self.assertEqual(calls[0]["receiver_address"], EVM_ADDRESS)
        self.assertEqual(calls[0]["network"], "137")
        self.assertEqual(calls[0]["note"], "rent")


if __name__ == "__main__":
    unittest.main()
