"""
Unit tests for the keyring manager.

Tests cover:
- Installing keys from local paths, file:// and https:// URLs
- All-or-nothing behavior on a bad source
- System keyring discovery with architecture subdirectories
- Key names derived from percent-encoded URLs
"""

import pytest

from apkclient.db import DatabaseInitializer, DatabaseLayout
from apkclient.errors import KeyringError, StorageError, TransportError, ValidationError
from apkclient.fs import MemFS
from apkclient.keyring import Keyring, is_key_file

ALPINE_KEY = "alpine-devel@lists.alpinelinux.org-4a6a0840.rsa.pub"
REMOTE_KEY_URL = "https://alpinelinux.org/keys/alpine-devel-5261cecb.rsa.pub"


def populate_system_keyring(fs, base, arch="x86_64", count=5):
    """Create count keys in base and in base/arch, plus a stray README."""
    fs.mkdir_all(f"{base}/{arch}", 0o755)
    for i in range(count):
        fs.write_file(f"{base}/build-{i}.rsa.pub", f"base key {i}".encode(), 0o644)
        fs.write_file(f"{base}/{arch}/{arch}-{i}.rsa.pub", f"{arch} key {i}".encode(), 0o644)
    fs.write_file(f"{base}/README.txt", b"these are the keys", 0o644)


class TestIsKeyFile:
    """Tests for the key-file naming convention."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            (ALPINE_KEY, True),
            ("wolfi-signing.rsa.pub", True),
            ("README.txt", False),
            ("key.pub", False),
            ("key.rsa.pub.bak", False),
        ],
    )
    def test_is_key_file(self, name, expected):
        assert is_key_file(name) is expected


class TestInitKeyring:
    """Tests for Keyring.init_keyring."""

    @pytest.fixture
    def host_fs(self):
        host = MemFS()
        host.mkdir_all("home/builder/keys", 0o755)
        host.write_file(f"home/builder/keys/{ALPINE_KEY}", b"local key", 0o600)
        return host

    @pytest.fixture
    def keyring(self, fs, client, host_fs):
        return Keyring(fs, client, host_fs=host_fs, arch="x86_64")

    @pytest.mark.asyncio
    async def test_local_and_remote(self, keyring, fs, repo):
        repo.add(REMOTE_KEY_URL, b"remote key")

        written = await keyring.init_keyring(
            [f"/home/builder/keys/{ALPINE_KEY}", REMOTE_KEY_URL]
        )

        assert written == [
            f"etc/apk/keys/{ALPINE_KEY}",
            "etc/apk/keys/alpine-devel-5261cecb.rsa.pub",
        ]
        assert [e.name for e in fs.read_dir("etc/apk/keys")] == sorted(
            [ALPINE_KEY, "alpine-devel-5261cecb.rsa.pub"]
        )
        assert fs.read_file(f"etc/apk/keys/{ALPINE_KEY}") == b"local key"
        assert fs.read_file("etc/apk/keys/alpine-devel-5261cecb.rsa.pub") == b"remote key"

    @pytest.mark.asyncio
    async def test_keys_are_world_readable(self, keyring, fs):
        await keyring.init_keyring([f"/home/builder/keys/{ALPINE_KEY}"])

        assert fs.stat(f"etc/apk/keys/{ALPINE_KEY}").perms == 0o644

    @pytest.mark.asyncio
    async def test_file_url(self, keyring, fs):
        written = await keyring.init_keyring([f"file:///home/builder/keys/{ALPINE_KEY}"])

        assert written == [f"etc/apk/keys/{ALPINE_KEY}"]

    @pytest.mark.asyncio
    async def test_extra_key_files(self, keyring, fs, repo):
        repo.add(REMOTE_KEY_URL, b"remote key")

        written = await keyring.init_keyring(
            [f"/home/builder/keys/{ALPINE_KEY}"], extra_key_files=[REMOTE_KEY_URL]
        )

        assert len(written) == 2

    @pytest.mark.asyncio
    async def test_empty_source_list(self, keyring, fs):
        written = await keyring.init_keyring([])

        assert written == []
        assert fs.read_dir("etc/apk/keys") == []

    @pytest.mark.asyncio
    async def test_missing_local_key(self, keyring, fs):
        with pytest.raises(KeyringError) as exc_info:
            await keyring.init_keyring(["/home/builder/keys/missing.rsa.pub"])

        assert exc_info.value.source == "/home/builder/keys/missing.rsa.pub"
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_unreachable_remote_key(self, keyring, repo):
        repo.offline = True

        with pytest.raises(TransportError) as exc_info:
            await keyring.init_keyring([REMOTE_KEY_URL])

        assert exc_info.value.url == REMOTE_KEY_URL

    @pytest.mark.asyncio
    async def test_remote_key_not_found(self, keyring):
        with pytest.raises(TransportError) as exc_info:
            await keyring.init_keyring([REMOTE_KEY_URL])

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_unsupported_scheme(self, keyring):
        with pytest.raises(KeyringError):
            await keyring.init_keyring(["ftp://example.com/keys/k.rsa.pub"])

    @pytest.mark.asyncio
    async def test_remote_url_without_name(self, keyring):
        with pytest.raises(KeyringError):
            await keyring.init_keyring(["https://example.com/"])

    @pytest.mark.asyncio
    async def test_bad_source_writes_nothing(self, keyring, fs, repo):
        repo.add(REMOTE_KEY_URL, b"remote key")

        with pytest.raises(KeyringError):
            await keyring.init_keyring(
                [
                    f"/home/builder/keys/{ALPINE_KEY}",
                    REMOTE_KEY_URL,
                    "/home/builder/keys/missing.rsa.pub",
                ]
            )

        assert not fs.exists("etc/apk/keys")

    @pytest.mark.asyncio
    async def test_unwritable_keyring(self, keyring, fs):
        fs.mkdir_all("etc/apk", 0o755)
        fs.write_file("etc/apk/keys", b"", 0o644)

        with pytest.raises(StorageError):
            await keyring.init_keyring([f"/home/builder/keys/{ALPINE_KEY}"])

    @pytest.mark.asyncio
    async def test_with_system_keyring(self, fs, client, host_fs):
        populate_system_keyring(fs, "usr/share/apk/keys")
        keyring = Keyring(fs, client, host_fs=host_fs, arch="x86_64", use_system_keyring=True)

        written = await keyring.init_keyring([f"/home/builder/keys/{ALPINE_KEY}"])

        assert len(written) == 11
        assert fs.read_file("etc/apk/keys/x86_64-0.rsa.pub") == b"x86_64 key 0"
        assert not fs.exists("etc/apk/keys/README.txt")


class TestLoadSystemKeyring:
    """Tests for Keyring.load_system_keyring."""

    @pytest.fixture
    def keyring(self, fs, client):
        return Keyring(fs, client, arch="x86_64")

    def test_default_location(self, keyring, fs):
        populate_system_keyring(fs, "usr/share/apk/keys")

        ring = keyring.load_system_keyring()

        assert len(ring) == 10
        assert "/usr/share/apk/keys/build-0.rsa.pub" in ring
        assert "/usr/share/apk/keys/x86_64/x86_64-4.rsa.pub" in ring
        assert not any(p.endswith("README.txt") for p in ring)

    def test_nonstandard_location(self, keyring, fs):
        populate_system_keyring(fs, "opt/keys")

        ring = keyring.load_system_keyring("/opt/keys")

        assert len(ring) == 10
        assert not any(p.endswith("README.txt") for p in ring)

    def test_layout_location(self, fs, client):
        populate_system_keyring(fs, "etc/vendor/keys")
        keyring = Keyring(
            fs, client, layout=DatabaseLayout(system_keyring_path="/etc/vendor/keys"), arch="amd64"
        )

        assert len(keyring.load_system_keyring()) == 10

    def test_union_of_locations(self, keyring, fs):
        populate_system_keyring(fs, "opt/a", count=2)
        populate_system_keyring(fs, "opt/b", count=3)

        assert len(keyring.load_system_keyring("/opt/a", "/opt/b")) == 10

    def test_arch_override(self, keyring, fs):
        populate_system_keyring(fs, "opt/keys")
        populate_system_keyring(fs, "opt/keys", arch="aarch64", count=2)

        ring = keyring.load_system_keyring("/opt/keys", arch="arm64")

        assert len(ring) == 7
        assert not any("/x86_64/" in p for p in ring)

    def test_without_arch_subdirectory(self, keyring, fs):
        fs.mkdir_all("opt/keys", 0o755)
        fs.write_file("opt/keys/only.rsa.pub", b"", 0o644)

        assert keyring.load_system_keyring("/opt/keys") == ["/opt/keys/only.rsa.pub"]

    def test_empty_directory(self, keyring, fs):
        fs.mkdir_all("opt/empty", 0o755)

        with pytest.raises(ValidationError):
            keyring.load_system_keyring("/opt/empty")

    def test_only_non_key_files(self, keyring, fs):
        fs.mkdir_all("opt/keys", 0o755)
        fs.write_file("opt/keys/README.txt", b"", 0o644)

        with pytest.raises(ValidationError):
            keyring.load_system_keyring("/opt/keys")

    def test_missing_directory(self, keyring):
        with pytest.raises(KeyringError) as exc_info:
            keyring.load_system_keyring("/does/not/exist")

        assert exc_info.value.source == "/does/not/exist"


class TestRemoteKeyNames:
    """Tests for the file name a remote key is stored under."""

    @pytest.fixture
    def keyring(self, fs, client):
        return Keyring(fs, client, arch="x86_64")

    @pytest.mark.asyncio
    async def test_percent_encoded_name_is_decoded(self, keyring, fs, repo):
        url = "https://alpinelinux.org/keys/alpine-devel%40lists.alpinelinux.org-4a6a0840.rsa.pub"
        repo.add(url, b"alpine key")

        written = await keyring.init_keyring([url])

        assert written == [f"etc/apk/keys/{ALPINE_KEY}"]
        assert fs.read_file(f"etc/apk/keys/{ALPINE_KEY}") == b"alpine key"

    @pytest.mark.asyncio
    async def test_encoded_separators_stay_in_keyring(self, keyring, fs, repo):
        DatabaseInitializer(fs).init_db()
        fs.write_file("etc/apk/world", b"busybox\n", 0o644)
        url = "https://example.com/keys/..%2F..%2Fetc%2Fapk%2Fworld"
        repo.add(url, b"untrusted bytes")

        written = await keyring.init_keyring([url])

        assert written == ["etc/apk/keys/world"]
        assert fs.read_file("etc/apk/world") == b"busybox\n"
        assert fs.read_file("etc/apk/keys/world") == b"untrusted bytes"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/keys/..%2Fworld%2F..",
            "https://example.com/keys/%2E%2E",
            "https://example.com/keys/key%2F",
        ],
    )
    async def test_unusable_names_rejected(self, keyring, fs, repo, url):
        repo.add(url, b"untrusted bytes")

        with pytest.raises(KeyringError) as exc_info:
            await keyring.init_keyring([url])

        assert exc_info.value.source == url
        assert not fs.exists("etc/apk/keys")
        assert repo.requests == []
