import os
import unittest

from crustasync.auth import AuthInfo


class TestAuthInfo(unittest.TestCase):
    def test_auth_info_valid_oauth(self) -> None:
        info = AuthInfo(
            kind="oauth",
            data={
                "client_secrets_file": "/tmp/client_secrets.json",
                "token_file": "/tmp/token.json",
            },
        )
        self.assertEqual(info.kind, "oauth")
        self.assertEqual(info.token_file, "/tmp/token.json")

    def test_auth_info_invalid_kind(self) -> None:
        with self.assertRaises(ValueError):
            AuthInfo(kind="service_account", data={})

    def test_auth_info_missing_keys(self) -> None:
        with self.assertRaises(ValueError):
            AuthInfo(kind="oauth", data={"client_secrets_file": "x"})

    def test_from_config_dir_uses_conventional_names(self) -> None:
        info = AuthInfo.from_config_dir("/etc/crustasync")
        self.assertEqual(
            info.client_secrets_file,
            os.path.join("/etc/crustasync", "client_secrets.json"),
        )
        self.assertEqual(info.token_file, os.path.join("/etc/crustasync", "token.json"))


if __name__ == "__main__":
    unittest.main()
