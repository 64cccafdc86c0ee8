import unittest

from finance_tracker.auth import (
    InvalidTokenError,
    bearer_token,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

SECRET = "test-secret"


class PasswordHashingTests(unittest.TestCase):
    def test_hash_verifies_only_the_original_password(self) -> None:
        hashed = hash_password("hunter22")

        self.assertNotEqual(hashed, "hunter22")
        self.assertTrue(verify_password("hunter22", hashed))
        self.assertFalse(verify_password("hunter23", hashed))

    def test_malformed_hash_does_not_verify(self) -> None:
        self.assertFalse(verify_password("hunter22", "not-a-bcrypt-hash"))


class AccessTokenTests(unittest.TestCase):
    def test_round_trip_returns_user_id(self) -> None:
        token = create_access_token("abc123", SECRET)

        self.assertEqual(decode_access_token(token, SECRET), "abc123")

    def test_wrong_secret_is_rejected(self) -> None:
        token = create_access_token("abc123", SECRET)

        with self.assertRaises(InvalidTokenError):
            decode_access_token(token, "other-secret")

    def test_expired_token_is_rejected(self) -> None:
        token = create_access_token("abc123", SECRET, expire_days=-1)

        with self.assertRaises(InvalidTokenError):
            decode_access_token(token, SECRET)

    def test_missing_and_garbage_tokens_are_rejected(self) -> None:
        for token in (None, "", "not.a.token"):
            with self.assertRaises(InvalidTokenError):
                decode_access_token(token, SECRET)


class BearerTokenTests(unittest.TestCase):
    def test_parses_bearer_header(self) -> None:
        self.assertEqual(bearer_token("Bearer abc"), "abc")
        self.assertEqual(bearer_token("bearer  abc "), "abc")

    def test_rejects_other_shapes(self) -> None:
        for header in (None, "", "Bearer", "Bearer   ", "Basic abc", "abc"):
            self.assertIsNone(bearer_token(header))


if __name__ == "__main__":
    unittest.main()
