import unittest

from dishpalate.errors import Forbidden, Unauthorized
from dishpalate.tokens import bearer_token, issue_token, verify_token

SECRET = "test-secret"


class TokenTests(unittest.TestCase):
    def test_roundtrip_keeps_claims(self):
        token = issue_token({"email": "a@x.com", "admin": False}, secret=SECRET)
        claims = verify_token(token, secret=SECRET)
        self.assertEqual(claims["email"], "a@x.com")
        self.assertFalse(claims["admin"])
        self.assertIn("exp", claims)

    def test_registered_claim_names_are_not_type_checked(self):
        claims = {"sub": 123, "jti": 7, "aud": "kitchen"}
        token = issue_token(claims, secret=SECRET)
        decoded = verify_token(token, secret=SECRET)
        for key, value in claims.items():
            self.assertEqual(decoded[key], value)

    def test_tampered_token_is_forbidden(self):
        token = issue_token({"email": "a@x.com"}, secret=SECRET)
        header, payload, signature = token.split(".")
        flipped = "A" if signature[0] != "A" else "B"
        with self.assertRaises(Forbidden):
            verify_token(f"{header}.{payload}.{flipped}{signature[1:]}", secret=SECRET)

    def test_wrong_secret_is_forbidden(self):
        token = issue_token({"email": "a@x.com"}, secret=SECRET)
        with self.assertRaises(Forbidden):
            verify_token(token, secret="other-secret")

    def test_expired_token_is_forbidden(self):
        token = issue_token({"email": "a@x.com"}, secret=SECRET, lifetime_seconds=-5)
        with self.assertRaises(Forbidden):
            verify_token(token, secret=SECRET)

    def test_bearer_header_parsing(self):
        self.assertEqual(bearer_token("Bearer abc.def.ghi"), "abc.def.ghi")
        for header in (None, "", "Bearer", "Bearer   ", "Token abc"):
            with self.assertRaises(Unauthorized):
                bearer_token(header)


if __name__ == "__main__":
    unittest.main()
