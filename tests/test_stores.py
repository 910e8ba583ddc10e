import json
from urllib.parse import unquote

import httpx
import pytest

from gatekeeper.db import make_engine
from gatekeeper.security import Action, ConfigurationError, Shield, StoreError
from gatekeeper.stores import KVStore, MemoryStore, SqlStore, build_store

from tests.helpers import IP, FakeClock, frequency_only, make_context

RULE = {"log_ip": IP, "ip_resolve": "host.example", "time": 100, "type": 0, "reason": 14}


class TestMemoryStore:
    def test_get_missing(self):
        assert MemoryStore().get(IP, "log") == {}

    def test_returns_copies(self):
        store = MemoryStore()
        data = {"ip": IP, "pageviews_s": 1}
        store.save(IP, data, "log")

        store.get(IP, "log")["pageviews_s"] = 50
        data["pageviews_s"] = 60

        assert store.get(IP, "log")["pageviews_s"] == 1

    def test_kinds_and_channels_are_separate(self):
        store = MemoryStore()
        store.save(IP, {"ip": IP}, "log")

        assert store.get(IP, "rule") == {}
        store.set_channel("other")
        assert store.get(IP, "log") == {}

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            MemoryStore().get(IP, "session")


class TestSqlStore:
    @pytest.fixture()
    def sql_store(self):
        store = SqlStore(engine=make_engine("sqlite://"))
        store.init(True)
        return store

    def test_log_records_roundtrip_as_json(self, sql_store):
        data = {"ip": IP, "pageviews_s": 3, "session": "abc"}

        sql_store.save(IP, data, "log")

        assert sql_store.get(IP, "log") == data

    def test_save_overwrites(self, sql_store):
        sql_store.save(IP, {"ip": IP, "pageviews_s": 1}, "log")
        sql_store.save(IP, {"ip": IP, "pageviews_s": 2}, "log")

        assert sql_store.get(IP, "log")["pageviews_s"] == 2

    def test_rule_columns(self, sql_store):
        sql_store.save(IP, RULE, "rule")

        assert sql_store.get(IP, "rule") == RULE

    def test_delete(self, sql_store):
        sql_store.save(IP, RULE, "rule")
        sql_store.delete(IP, "rule")
        sql_store.delete(IP, "rule")

        assert sql_store.get(IP, "rule") == {}

    def test_channels_get_their_own_tables(self, sql_store):
        sql_store.save(IP, RULE, "rule")

        sql_store.set_channel("site_b")
        sql_store.init(True)

        assert sql_store.get(IP, "rule") == {}
        assert "site_b_rule" in sql_store._metadata.tables

    def test_invalid_channel_name(self, sql_store):
        with pytest.raises(ValueError):
            sql_store.set_channel("drop table; --")

    def test_missing_tables_raise_store_error(self):
        store = SqlStore(engine=make_engine("sqlite://"))
        store.init(False)

        with pytest.raises(StoreError) as excinfo:
            store.get(IP, "log")
        assert excinfo.value.kind == "log"

    def test_shield_on_sql(self):
        clock = FakeClock()
        store = SqlStore(engine=make_engine("sqlite://"))
        shield = Shield(store=store, settings=frequency_only(s=2), clock=clock)
        ctx = make_context()

        results = [shield.run(ctx) for _ in range(3)]

        assert [d.allowed for d in results] == [True, True, False]
        assert store.get(IP, "rule")["type"] == Action.DENY
        assert store.get(IP, "log") == {}


class FakeKV:
    """In-memory stand-in for the Cloudflare KV values endpoint."""

    def __init__(self):
        self.values = {}
        self.requests = []
        self.fail_with = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with)
        key = unquote(request.url.raw_path.decode().rsplit("/values/", 1)[1].split("?")[0])
        if request.method == "GET":
            if key not in self.values:
                return httpx.Response(404, json={"success": False})
            return httpx.Response(200, text=self.values[key])
        if request.method == "PUT":
            self.values[key] = request.content.decode()
            return httpx.Response(200, json={"success": True})
        if request.method == "DELETE":
            self.values.pop(key, None)
            return httpx.Response(200, json={"success": True})
        return httpx.Response(405)


class TestKVStore:
    @pytest.fixture()
    def kv(self):
        return FakeKV()

    @pytest.fixture()
    def kv_store(self, kv):
        return KVStore(
            account_id="acct",
            namespace_id="ns",
            api_token="token",
            transport=httpx.MockTransport(kv),
        )

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError):
            KVStore(account_id="", namespace_id="ns", api_token="token")

    def test_get_missing(self, kv_store):
        assert kv_store.get(IP, "log") == {}

    def test_save_and_get(self, kv_store, kv):
        kv_store.save(IP, RULE, "rule")

        assert kv_store.get(IP, "rule") == RULE
        assert json.loads(kv.values[f"gatekeeper:rule:{IP}"]) == RULE

    def test_log_records_expire(self, kv_store, kv):
        kv_store.save(IP, {"ip": IP}, "log")
        kv_store.save(IP, RULE, "rule")

        log_put, rule_put = kv.requests
        assert log_put.url.params["expiration_ttl"] == "172800"
        assert "expiration_ttl" not in rule_put.url.params
        assert log_put.headers["Authorization"] == "Bearer token"

    def test_delete(self, kv_store):
        kv_store.save(IP, RULE, "rule")
        kv_store.delete(IP, "rule")
        kv_store.delete(IP, "rule")

        assert kv_store.get(IP, "rule") == {}

    def test_channel_prefix(self, kv_store, kv):
        kv_store.set_channel("site_b")
        kv_store.save(IP, RULE, "rule")

        assert f"site_b:rule:{IP}" in kv.values

    def test_server_error(self, kv_store, kv):
        kv.fail_with = 500

        with pytest.raises(StoreError):
            kv_store.get(IP, "rule")
        with pytest.raises(StoreError):
            kv_store.save(IP, RULE, "rule")

    def test_network_error(self):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = KVStore(
            account_id="acct",
            namespace_id="ns",
            api_token="token",
            transport=httpx.MockTransport(unreachable),
        )

        with pytest.raises(StoreError):
            store.get(IP, "log")


def test_build_store():
    assert isinstance(build_store("memory", channel="site_a"), MemoryStore)
    with pytest.raises(ValueError):
        build_store("redis")
