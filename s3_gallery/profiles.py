from __future__ import annotations
"""Object store connection profiles and persistence."""
from dataclasses import dataclass
import json
import os
from pathlib import Path
from typing import Mapping

import keyring
from keyring.errors import KeyringError

ENV_PREFIX = "S3_"


@dataclass
class ConnectionProfile:
    """Everything needed to reach one bucket of an S3-compatible store."""

    name: str
    endpoint_url: str
    bucket: str
    access_key: str
    secret_key: str
    region: str = ""


class KeychainStore:
    """Encapsulates OS keychain access for secrets."""

    def __init__(self, service_name: str = "s3-gallery"):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError:
            return ""

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        if not profile_name:
            return
        if not secret_key:
            self.delete_secret(profile_name)
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret_key)
        except KeyringError:
            return

    def delete_secret(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, profile_name)
        except KeyringError:
            return


def load_profile_from_env(
    environ: Mapping[str, str] | None = None,
    *,
    prefix: str = ENV_PREFIX,
    name: str = "env",
) -> ConnectionProfile:
    """Build a profile from ``S3_ENDPOINT``, ``S3_BUCKET`` and friends.

    Raises:
        ValueError: when the endpoint or bucket variable is missing.
    """

    env = os.environ if environ is None else environ
    endpoint_url = env.get(f"{prefix}ENDPOINT", "").strip()
    bucket = env.get(f"{prefix}BUCKET", "").strip()
    if not endpoint_url or not bucket:
        raise ValueError(f"{prefix}ENDPOINT and {prefix}BUCKET must be set")
    return ConnectionProfile(
        name=name,
        endpoint_url=endpoint_url,
        bucket=bucket,
        region=env.get(f"{prefix}REGION", "").strip(),
        access_key=env.get(f"{prefix}ACCESS_KEY", ""),
        secret_key=env.get(f"{prefix}SECRET_KEY", ""),
    )


class ProfileStorage:
    """Simple JSON-backed store for connection profiles."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3_gallery_connections.json"
        self._path = Path(storage_path)
        self._keychain = KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        data = self._read_data()
        profiles: list[ConnectionProfile] = []
        sanitized: list[dict[str, str]] = []
        saw_plaintext = False
        for entry in data:
            try:
                name = entry["name"]
                endpoint_url = entry["endpoint_url"]
                bucket = entry["bucket"]
                access_key = entry["access_key"]
            except (KeyError, TypeError):
                continue
            region = entry.get("region", "")
            secret_key = entry.get("secret_key", "")
            if secret_key:
                saw_plaintext = True
                self._keychain.set_secret(name, secret_key)
            else:
                secret_key = self._keychain.get_secret(name)
            profiles.append(
                ConnectionProfile(
                    name=name,
                    endpoint_url=endpoint_url,
                    bucket=bucket,
                    region=region,
                    access_key=access_key,
                    secret_key=secret_key,
                )
            )
            sanitized.append(self._public_fields(profiles[-1]))
        if saw_plaintext:
            self._write_data(sanitized)
        return profiles

    def get(self, name: str) -> ConnectionProfile:
        for profile in self.load():
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    def save(self, profiles: list[ConnectionProfile]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = []
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.secret_key)
            data.append(self._public_fields(profile))
        existing_names = self._load_profile_names()
        current_names = {profile.name for profile in profiles}
        for name in existing_names - current_names:
            self._keychain.delete_secret(name)
        self._write_data(data)

    def _load_profile_names(self) -> set[str]:
        names = set()
        for entry in self._read_data():
            name = entry.get("name") if isinstance(entry, dict) else None
            if isinstance(name, str) and name:
                names.add(name)
        return names

    def _read_data(self) -> list:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        return data if isinstance(data, list) else []

    @staticmethod
    def _public_fields(profile: ConnectionProfile) -> dict[str, str]:
        return {
            "name": profile.name,
            "endpoint_url": profile.endpoint_url,
            "bucket": profile.bucket,
            "region": profile.region,
            "access_key": profile.access_key,
        }

    def _write_data(self, data: list[dict[str, str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
