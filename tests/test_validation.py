import unittest

from payout_bot.services.validation import (
    edit_distance,
    is_valid_address,
    is_valid_email,
    suggest_email_correction,
    valid_networks_for_address,
)

EVM_ADDRESS = "0x" + "a" * 40


class EmailValidationTests(unittest.TestCase):
    def test_accepts_plain_address(self):
        self.assertTrue(is_valid_email("user@example.com"))

    def test_rejects_malformed(self):
        for value in ("userexample.com", "user@@example.com", "user@example", "@example.com", "", None, 42):
            self.assertFalse(is_valid_email(value), value)

    def test_suggests_common_provider(self):
        suggestion = suggest_email_correction("user@gmial.com")
        self.assertTrue(suggestion.has_typo)
        self.assertEqual(suggestion.suggestion, "user@gmail.com")

    def test_provider_name_inside_domain_is_suggested(self):
        self.assertEqual(suggest_email_correction("user@xyzgmail.com").suggestion, "user@gmail.com")
        self.assertEqual(suggest_email_correction("user@hot.net").suggestion, "user@hotmail.com")

    def test_known_provider_has_no_suggestion(self):
        suggestion = suggest_email_correction("user@gmail.com")
        self.assertFalse(suggestion.has_typo)
        self.assertIsNone(suggestion.suggestion)

    def test_unrelated_domain_has_no_suggestion(self):
        self.assertFalse(suggest_email_correction("alice@example.com").has_typo)

    def test_edit_distance(self):
        self.assertEqual(edit_distance("gmial.com", "gmail.com"), 2)
        self.assertEqual(edit_distance("", "abc"), 3)


class AddressValidationTests(unittest.TestCase):
    def test_evm_address(self):
        self.assertTrue(is_valid_address(EVM_ADDRESS, "ethereum"))
        self.assertTrue(is_valid_address(EVM_ADDRESS, "polygon"))
        self.assertTrue(is_valid_address(EVM_ADDRESS, "137"))
        self.assertFalse(is_valid_address("notanaddress", "ethereum"))
        self.assertFalse(is_valid_address("0x" + "g" * 40, "ethereum"))

    def test_other_families(self):
        self.assertTrue(is_valid_address("1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2", "bitcoin"))
        self.assertTrue(is_valid_address("bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq", "btc"))
        self.assertTrue(is_valid_address("TJRabPrwbZy45sbavfcjinPJC18kjpRTv8", "tron"))
        self.assertFalse(is_valid_address(EVM_ADDRESS, "tron"))

    def test_unknown_network_uses_fallback(self):
        self.assertTrue(is_valid_address(EVM_ADDRESS, "somechain"))
        self.assertFalse(is_valid_address("short", "somechain"))

    def test_never_raises(self):
        self.assertFalse(is_valid_address(None, "ethereum"))
        self.assertFalse(is_valid_address(EVM_ADDRESS, None))
        self.assertFalse(is_valid_address("", ""))

    def test_valid_networks_for_address(self):
        self.assertEqual(valid_networks_for_address(EVM_ADDRESS, ["137", "solana", "8453"]), ["137", "8453"])


if __name__ == "__main__":
    unittest.main()
