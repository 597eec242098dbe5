import json
import tempfile
import unittest
from pathlib import Path

from s3_gallery.profiles import ConnectionProfile, ProfileStorage, load_profile_from_env


class FakeKeychain:
    def __init__(self):
        self.secrets = {}
        self.set_calls = []
        self.delete_calls = []

    def get_secret(self, profile_name: str) -> str:
        return self.secrets.get(profile_name, "")

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        self.set_calls.append((profile_name, secret_key))
        self.secrets[profile_name] = secret_key

    def delete_secret(self, profile_name: str) -> None:
        self.delete_calls.append(profile_name)
        self.secrets.pop(profile_name, None)


class ProfileStorageTests(unittest.TestCase):
    def test_load_migrates_plaintext_secrets(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "connections.json"
            payload = [
                {
                    "name": "alpha",
                    "endpoint_url": "https://one",
                    "bucket": "images",
                    "region": "us-east-1",
                    "access_key": "a",
                    "secret_key": "secret",
                }
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            storage = ProfileStorage(path)
            fake_keychain = FakeKeychain()
            storage._keychain = fake_keychain

            profiles = storage.load()

            self.assertEqual("secret", profiles[0].secret_key)
            self.assertEqual("images", profiles[0].bucket)
            self.assertEqual("us-east-1", profiles[0].region)
            self.assertEqual([("alpha", "secret")], fake_keychain.set_calls)
            sanitized = json.loads(path.read_text(encoding="utf-8"))
            self.assertNotIn("secret_key", sanitized[0])
            self.assertEqual("images", sanitized[0]["bucket"])

    def test_load_uses_keychain_when_secret_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "connections.json"
            payload = [
                {"name": "alpha", "endpoint_url": "https://one", "bucket": "images", "access_key": "a"},
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            storage = ProfileStorage(path)
            fake_keychain = FakeKeychain()
            fake_keychain.secrets["alpha"] = "stored-secret"
            storage._keychain = fake_keychain

            profiles = storage.load()

            self.assertEqual("stored-secret", profiles[0].secret_key)
            self.assertEqual("", profiles[0].region)

    def test_load_skips_incomplete_entries(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "connections.json"
            payload = [
                {"name": "no-bucket", "endpoint_url": "https://one", "access_key": "a"},
                {"name": "ok", "endpoint_url": "https://two", "bucket": "b", "access_key": "a"},
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            storage = ProfileStorage(path)
            storage._keychain = FakeKeychain()

            profiles = storage.load()

            self.assertEqual(["ok"], [profile.name for profile in profiles])

    def test_get_raises_for_unknown_profile(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = ProfileStorage(Path(tmp) / "connections.json")
            storage._keychain = FakeKeychain()

            with self.assertRaises(ValueError):
                storage.get("missing")

    def test_save_deletes_removed_keychain_entries(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "connections.json"
            payload = [
                {"name": "alpha", "endpoint_url": "https://one", "bucket": "x", "access_key": "a"},
                {"name": "beta", "endpoint_url": "https://two", "bucket": "y", "access_key": "b"},
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            storage = ProfileStorage(path)
            fake_keychain = FakeKeychain()
            storage._keychain = fake_keychain

            profiles = [
                ConnectionProfile(
                    name="alpha",
                    endpoint_url="https://one",
                    bucket="x",
                    access_key="a",
                    secret_key="secret",
                ),
            ]
            storage.save(profiles)

            self.assertEqual(["beta"], fake_keychain.delete_calls)
            self.assertEqual([("alpha", "secret")], fake_keychain.set_calls)


class LoadProfileFromEnvTests(unittest.TestCase):
    def test_reads_all_variables(self):
        environ = {
            "S3_ENDPOINT": "http://minio:9000",
            "S3_BUCKET": "images",
            "S3_REGION": "eu-west-1",
            "S3_ACCESS_KEY": "access",
            "S3_SECRET_KEY": "secret",
        }

        profile = load_profile_from_env(environ)

        self.assertEqual(
            ConnectionProfile(
                name="env",
                endpoint_url="http://minio:9000",
                bucket="images",
                region="eu-west-1",
                access_key="access",
                secret_key="secret",
            ),
            profile,
        )

    def test_requires_endpoint_and_bucket(self):
        with self.assertRaises(ValueError):
            load_profile_from_env({"S3_ENDPOINT": "http://minio:9000"})


if __name__ == "__main__":
    unittest.main()
