"""
Tests for SyncOrchestrator.

Tests cover:
- push → pull round-trip of the reference snapshot
- Result categories: config missing, remote error, no data, decrypt failed,
  partial restore, unexpected errors
- Capability usage: write token only on mutation, account id only on list
- Configuration re-read per call and endpoint resolution
"""
import pytest

from session_sync.exceptions import ConfigMissing, NoData
from session_sync.models import Snapshot, SyncResult, SyncStatus
from session_sync.orchestrator import SyncOrchestrator
from session_sync.vault.config import BackendConfig, FileConfigStore, SyncConfig
from session_sync.vault.crypto import decrypt, derive_account_id, derive_write_token

from conftest import OTHER_SECRET, SECRET, MemoryBrowserPage, StaticConfig

ORIGIN = "https://x.test"


@pytest.fixture
def config():
    return StaticConfig(SyncConfig(secret=SECRET))


@pytest.fixture
def sync(config, remote):
    return SyncOrchestrator(config, remote=remote)


class TestPushPull:

    @pytest.mark.asyncio
    async def test_push_then_pull_roundtrip(self, sync, remote, snapshot):
        result = await sync.push(snapshot)
        assert result.success is True
        assert result.status == SyncStatus.OK

        account_id = derive_account_id(SECRET)
        stored = remote.rows[(account_id, ORIGIN)]
        assert stored["write_token"] == derive_write_token(SECRET)
        assert Snapshot.model_validate(decrypt(stored["envelope"], SECRET)) == snapshot

        target = MemoryBrowserPage("https://x.test/")
        result = await sync.pull(target)
        assert result.success is True
        assert result.status == SyncStatus.OK
        assert result.data == {"origin": ORIGIN, "restored": 1, "failed": 0}

        pulled = Snapshot(
            origin_url=snapshot.origin_url,
            title=snapshot.title,
            cookies=list(target.jar.values()),
            local_entries=target.storage.local_entries,
            session_entries=target.storage.session_entries,
        )
        restored = pulled.cookies[0]
        original = snapshot.cookies[0]
        for attr in ("name", "value", "domain", "path", "secure", "http_only", "same_site"):
            assert getattr(restored, attr) == getattr(original, attr)
        assert pulled.local_entries == snapshot.local_entries
        assert pulled.session_entries == snapshot.session_entries

    @pytest.mark.asyncio
    async def test_push_page_captures_live_state(self, sync, remote, page):
        result = await sync.push_page(page)
        assert result.success
        envelope = remote.rows[(derive_account_id(SECRET), ORIGIN)]["envelope"]
        document = decrypt(envelope, SECRET)
        assert document["url"] == "https://x.test/app"
        assert [c["name"] for c in document["cookies"]] == ["stale"]
        assert document["sessionStorage"] == [{"key": "tab", "value": "1"}]

    @pytest.mark.asyncio
    async def test_push_overwrites_previous(self, sync, remote, snapshot):
        await sync.push(snapshot)
        newer = snapshot.model_copy(update={"title": "newer"})
        await sync.push(newer)
        assert len(remote.rows) == 1
        envelope = remote.rows[(derive_account_id(SECRET), ORIGIN)]["envelope"]
        assert decrypt(envelope, SECRET)["title"] == "newer"

    @pytest.mark.asyncio
    async def test_explicit_secret_overrides_config(self, remote, snapshot):
        sync = SyncOrchestrator(StaticConfig(None), remote=remote)
        result = await sync.push(snapshot, secret=OTHER_SECRET)
        assert result.success
        assert (derive_account_id(OTHER_SECRET), ORIGIN) in remote.rows

    @pytest.mark.asyncio
    async def test_pull_explicit_origin(self, sync, snapshot):
        await sync.push(snapshot)
        elsewhere = MemoryBrowserPage("https://other.test/")
        result = await sync.pull(elsewhere, origin=ORIGIN)
        assert result.success
        assert result.data["origin"] == ORIGIN


class TestExplicitSecret:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "typed", [SECRET.lower(), SECRET.replace("-", ""), f"  {SECRET.lower()} "]
    )
    async def test_typed_variants_reach_same_row(self, sync, remote, snapshot, typed):
        await sync.push(snapshot)
        target = MemoryBrowserPage("https://x.test/")
        result = await sync.pull(target, secret=typed)
        assert result.status == SyncStatus.OK
        assert result.data["restored"] == 1
        assert ("read", derive_account_id(SECRET), ORIGIN) in remote.calls

    @pytest.mark.asyncio
    async def test_typed_variant_push_uses_canonical_key(self, remote, snapshot):
        sync = SyncOrchestrator(StaticConfig(None), remote=remote)
        result = await sync.push(snapshot, secret=SECRET.lower())
        assert result.success
        stored = remote.rows[(derive_account_id(SECRET), ORIGIN)]
        assert stored["write_token"] == derive_write_token(SECRET)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("typed", ["hello", "ABCDEF-GHJKMN-PQRSTU-VWXYZ0"])
    async def test_malformed_key_refused(self, sync, remote, snapshot, page, typed):
        results = [
            await sync.push(snapshot, secret=typed),
            await sync.pull(page, secret=typed),
            await sync.delete_origin(ORIGIN, secret=typed),
            await sync.list_origins(secret=typed),
        ]
        for result in results:
            assert result.success is False
            assert result.status == SyncStatus.CONFIG_MISSING
        assert remote.calls == []


class TestResultCategories:

    @pytest.mark.asyncio
    async def test_config_missing(self, remote, snapshot, page):
        sync = SyncOrchestrator(StaticConfig(None), remote=remote)
        results = [
            await sync.push(snapshot),
            await sync.pull(page),
            await sync.delete_origin(ORIGIN),
            await sync.list_origins(),
        ]
        for result in results:
            assert result.success is False
            assert result.status == SyncStatus.CONFIG_MISSING
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_unreadable_config_is_config_missing(self, tmp_path, remote):
        path = tmp_path / "config.json"
        path.write_text("{broken")
        sync = SyncOrchestrator(FileConfigStore(path), remote=remote)
        result = await sync.list_origins()
        assert result.status == SyncStatus.CONFIG_MISSING

    @pytest.mark.asyncio
    async def test_no_data(self, sync, page):
        result = await sync.pull(page)
        assert result.success is False
        assert result.status == SyncStatus.NO_DATA
        assert ORIGIN in result.message

    @pytest.mark.asyncio
    async def test_decrypt_failed(self, remote, snapshot, page):
        writer = SyncOrchestrator(StaticConfig(SyncConfig(secret=OTHER_SECRET)), remote=remote)
        await writer.push(snapshot)
        # plant the foreign envelope under SECRET's account
        row = remote.rows.pop((derive_account_id(OTHER_SECRET), ORIGIN))
        remote.rows[(derive_account_id(SECRET), ORIGIN)] = row

        reader = SyncOrchestrator(StaticConfig(SyncConfig(secret=SECRET)), remote=remote)
        result = await reader.pull(page)
        assert result.success is False
        assert result.status == SyncStatus.DECRYPT_FAILED
        assert ("x.test", "stale", "/") in page.jar

    @pytest.mark.asyncio
    async def test_remote_error_verbatim(self, sync, remote, snapshot, page):
        remote.fail_with = "permission denied for write_token"
        push = await sync.push(snapshot)
        pull = await sync.pull(page)
        listing = await sync.list_origins()
        for result in (push, pull, listing):
            assert result.success is False
            assert result.status == SyncStatus.REMOTE_ERROR
            assert result.message == "permission denied for write_token"

    @pytest.mark.asyncio
    async def test_partial_restore_is_qualified_success(self, sync, snapshot):
        cookies = list(snapshot.cookies) + [
            snapshot.cookies[0].model_copy(update={"name": "pref"}),
            snapshot.cookies[0].model_copy(update={"name": "csrf"}),
        ]
        await sync.push(snapshot.model_copy(update={"cookies": cookies}))
        target = MemoryBrowserPage("https://x.test/")
        target.reject.add("csrf")
        result = await sync.pull(target)
        assert result.success is True
        assert result.status == SyncStatus.PARTIAL_RESTORE
        assert result.data["restored"] == 2
        assert result.data["failed"] == 1
        assert "2 of 3" in result.message

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_value(self, sync, page):
        async def broken(*args, **kwargs):
            raise KeyError("boom")
        page.read_storage = broken
        result = await sync.push_page(page)
        assert result.success is False
        assert result.status == SyncStatus.ERROR

    def test_statuses_are_distinct(self):
        categories = {
            SyncStatus.CONFIG_MISSING, SyncStatus.REMOTE_ERROR, SyncStatus.NO_DATA,
            SyncStatus.DECRYPT_FAILED, SyncStatus.PARTIAL_RESTORE,
        }
        assert len({s.value for s in categories}) == 5

    def test_defaults_without_message(self):
        err = NoData()
        assert err.origin is None
        assert str(err) == NoData.message
        assert str(ConfigMissing()) == ConfigMissing.message
        assert SyncResult.ok().message is None


class TestCapabilities:

    @pytest.mark.asyncio
    async def test_delete_sends_write_token(self, sync, remote, snapshot):
        await sync.push(snapshot)
        result = await sync.delete_origin(ORIGIN)
        assert result.success
        assert remote.rows == {}
        assert remote.calls[-1] == (
            "delete", derive_account_id(SECRET), ORIGIN, derive_write_token(SECRET),
        )

    @pytest.mark.asyncio
    async def test_delete_absent_is_ok(self, sync):
        result = await sync.delete_origin("https://never.test")
        assert result.success

    @pytest.mark.asyncio
    async def test_list_uses_account_id_only(self, sync, remote, snapshot):
        await sync.push(snapshot)
        result = await sync.list_origins()
        assert result.success
        assert [r.origin for r in result.data] == [ORIGIN]
        assert remote.calls[-1] == ("list", derive_account_id(SECRET))

    @pytest.mark.asyncio
    async def test_config_is_read_every_call(self, sync, config, snapshot):
        await sync.list_origins()
        await sync.list_origins()
        assert config.loads == 2
        config.config = None
        result = await sync.list_origins()
        assert result.status == SyncStatus.CONFIG_MISSING


class TestEndpointResolution:

    @pytest.mark.asyncio
    async def test_factory_receives_override(self, remote):
        backend = BackendConfig(url="https://mine.example.com", anon_key="anon")
        seen = []

        async def factory(endpoint):
            seen.append(endpoint)
            return remote

        sync = SyncOrchestrator(
            StaticConfig(SyncConfig(secret=SECRET, backend=backend)),
            remote_factory=factory,
        )
        result = await sync.list_origins()
        assert result.success
        assert seen == [backend]

    @pytest.mark.asyncio
    async def test_missing_endpoint_is_remote_error(self, monkeypatch):
        monkeypatch.delenv("SESSION_SYNC_URL", raising=False)
        sync = SyncOrchestrator(StaticConfig(SyncConfig(secret=SECRET)))
        result = await sync.list_origins()
        assert result.status == SyncStatus.REMOTE_ERROR
