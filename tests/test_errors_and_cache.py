import unittest

from fakes import FakeClock

from payout_bot.services.cache import BalanceCache
from payout_bot.services.errors import (
    BELOW_MINIMUM,
    GENERIC,
    INSUFFICIENT_BALANCE,
    INVALID_OTP,
    KYC_REQUIRED,
    LOGIN_PATTERNS,
    OVER_LIMIT,
    UNKNOWN_EMAIL,
    classify_error,
    is_business_rule,
)


class ClassifyErrorTests(unittest.TestCase):
    def test_business_rules(self):
        self.assertEqual(classify_error("Insufficient balance"), INSUFFICIENT_BALANCE)
        self.assertEqual(classify_error("Amount below minimum of 50 USDC"), BELOW_MINIMUM)
        self.assertEqual(classify_error("Daily limit reached"), OVER_LIMIT)
        self.assertEqual(classify_error("KYC verification required"), KYC_REQUIRED)
        self.assertEqual(classify_error("Internal server error"), GENERIC)
        self.assertEqual(classify_error(None), GENERIC)

    def test_code_wins_over_text(self):
        self.assertEqual(classify_error("Request failed", code="KYC_NOT_APPROVED"), KYC_REQUIRED)
        self.assertEqual(classify_error("Insufficient balance", code="unknown_code"), INSUFFICIENT_BALANCE)

    def test_login_table(self):
        self.assertEqual(classify_error("OTP expired", table=LOGIN_PATTERNS), INVALID_OTP)
        self.assertEqual(classify_error("User not found", table=LOGIN_PATTERNS), UNKNOWN_EMAIL)

    def test_is_business_rule(self):
        self.assertTrue(is_business_rule(KYC_REQUIRED))
        self.assertFalse(is_business_rule(GENERIC))
        self.assertFalse(is_business_rule(INVALID_OTP))


class BalanceCacheTests(unittest.IsolatedAsyncioTestCase):
    async def test_entries_expire(self):
        clock = FakeClock()
        cache = BalanceCache(ttl=60, clock=clock)
        cache.set(1, ["balance"])
        clock.advance(59)
        self.assertEqual(cache.get(1), ["balance"])
        clock.advance(1)
        self.assertIsNone(cache.get(1))

    async def test_expired_entries_are_dropped_on_write(self):
        clock = FakeClock()
        cache = BalanceCache(ttl=60, clock=clock)
        cache.set(1, ["stale"])
        clock.advance(61)
        cache.set(2, ["fresh"])
        self.assertEqual(list(cache._entries), [2])

    async def test_get_or_fetch_uses_cached_value(self):
        cache = BalanceCache(ttl=60, clock=FakeClock())
        calls = []

        async def fetch():
            calls.append(1)
            return ["balance"]

        self.assertEqual(await cache.get_or_fetch(1, fetch), ["balance"])
        self.assertEqual(await cache.get_or_fetch(1, fetch), ["balance"])
        self.assertEqual(len(calls), 1)
        cache.invalidate(1)
        await cache.get_or_fetch(1, fetch)
        self.assertEqual(len(calls), 2)

    async def test_zero_ttl_disables_caching(self):
        cache = BalanceCache(ttl=0, clock=FakeClock())
        cache.set(1, ["balance"])
        self.assertIsNone(cache.get(1))


if __name__ == "__main__":
    unittest.main()
