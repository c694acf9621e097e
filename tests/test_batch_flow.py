import unittest

from fakes import USER_ID, log_in, make_engine

from payout_bot.flows.batch import parse_batch_line
from payout_bot.states.flows import BatchStates


class BatchLineTests(unittest.TestCase):
    def test_parses_email_and_amount(self):
        self.assertEqual(parse_batch_line("bob@x.com 5"), ("bob@x.com", "5"))
        self.assertEqual(parse_batch_line("bob@x.com,2.50"), ("bob@x.com", "2.50"))

    def test_rejects_malformed_lines(self):
        for line in ("bob@x.com", "bob 5", "bob@x.com five", "bob@x.com 0", "bob@x.com 5 extra"):
            self.assertIsNone(parse_batch_line(line), line)


class BatchFlowTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine, self.store, self.api, self.cache = make_engine()
        await log_in(self.store)
        await self.engine.start_flow(USER_ID, "batch")

    async def send(self, text=None, action=None):
        return await self.engine.handle_input(USER_ID, text=text, action=action)

    async def entries(self):
        return (await self.store.get(USER_ID)).scratch.get("entries")

    async def test_duplicate_no_keeps_existing_amount(self):
        await self.send("bob@x.com 5")
        reply = await self.send("bob@x.com 9")
        self.assertEqual(reply.step, BatchStates.DUPLICATE.state)
        reply = await self.send("NO")
        self.assertEqual(reply.step, BatchStates.ENTRIES.state)
        self.assertEqual(await self.entries(), [{"email": "bob@x.com", "amount": "5"}])

    async def test_duplicate_yes_overwrites(self):
        await self.send("bob@x.com 5")
        await self.send("bob@x.com 9")
        await self.send("YES")
        self.assertEqual(await self.entries(), [{"email": "bob@x.com", "amount": "9"}])

    async def test_lines_after_duplicate_are_resumed(self):
        await self.send("bob@x.com 5")
        reply = await self.send("carol@x.com 1\nbob@x.com 9\ndave@x.com 2")
        self.assertEqual(reply.step, BatchStates.DUPLICATE.state)
        reply = await self.send("yes")
        self.assertEqual(reply.step, BatchStates.ENTRIES.state)
        self.assertEqual(
            await self.entries(),
            [
                {"email": "bob@x.com", "amount": "9"},
                {"email": "carol@x.com", "amount": "1"},
                {"email": "dave@x.com", "amount": "2"},
            ],
        )

    async def test_bad_line_rejects_whole_message(self):
        await self.send("bob@x.com 5")
        reply = await self.send("carol@x.com 1\nnot a line")
        self.assertEqual(reply.step, BatchStates.ENTRIES.state)
        self.assertIn("Line 2", reply.text)
        self.assertEqual(await self.entries(), [{"email": "bob@x.com", "amount": "5"}])

    async def test_done_requires_entries(self):
        reply = await self.send("DONE")
        self.assertEqual(reply.step, BatchStates.ENTRIES.state)
        await self.send("bob@x.com 5")
        reply = await self.send("done")
        self.assertEqual(reply.step, BatchStates.CONFIRM.state)

    async def test_list_and_clear(self):
        await self.send("bob@x.com 5\ncarol@x.com 2.5")
        reply = await self.send("LIST")
        self.assertIn("bob@x.com", reply.text)
        self.assertIn("7.50", reply.text)
        await self.send("CLEAR")
        self.assertEqual(await self.entries(), [])

    async def test_cancel_token_aborts(self):
        await self.send("bob@x.com 5")
        reply = await self.send("CANCEL")
        self.assertTrue(reply.finished)
        session = await self.store.get(USER_ID)
        self.assertEqual(session.scratch, {})
        self.assertIsNone(session.current_step)

    async def test_submission_reports_each_recipient(self):
        self.api.batch_errors["carol@x.com"] = "Recipient account is not active"
        await self.send("bob@x.com 5\ncarol@x.com 2")
        await self.send("DONE")
        reply = await self.send(action="confirm")
        self.assertTrue(reply.finished)
        entries = self.api.calls_to("send_batch")[0]["entries"]
        self.assertEqual(
            entries,
            [
                {"email": "bob@x.com", "amount": "500000000", "currency": "USDC"},
                {"email": "carol@x.com", "amount": "200000000", "currency": "USDC"},
            ],
        )
        self.assertIn("✅ bob@x.com: success", reply.text)
        self.assertIn("❌ carol@x.com: Recipient account is not active", reply.text)
        self.assertEqual((await self.store.get(USER_ID)).scratch, {})


if __name__ == "__main__":
    unittest.main()
