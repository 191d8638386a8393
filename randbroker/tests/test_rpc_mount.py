import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from randbroker.adapters.rpc_mount import _bind_jsonrpc, mount_broker_rpc  # noqa: E402
from randbroker.adapters.service import BrokerService  # noqa: E402
from randbroker.registry import make_commit_id  # noqa: E402
from randbroker.store.memory import MemoryKeyValue  # noqa: E402

from .conftest import BOT, DENOM, OWNER, PROXY, SEED, USER  # noqa: E402


@pytest.fixture()
def service(oracle_key, metrics):
    return BrokerService(MemoryKeyValue(), clock=lambda: 1_000, verifier=oracle_key.verifier, metrics=metrics)


@pytest.fixture()
def client(service):
    app = FastAPI()
    mount_broker_rpc(app, service=service)
    return TestClient(app)


def _instantiate(client):
    r = client.post(
        "/broker/instantiate",
        json={"sender": OWNER, "params": {"nois_proxy": PROXY, "nois_fee": "300", "fee": "300"}},
    )
    assert r.status_code == 200, r.text
    return r.json()


def _rpc(client, method, params=None):
    body = {"jsonrpc": "2.0", "id": 7, "method": method}
    if params is not None:
        body["params"] = params
    r = client.post("/broker/rpc", json=body)
    assert r.status_code == 200
    out = r.json()
    assert out["id"] == 7
    return out


def test_rest_request_and_beacon_flow(client):
    attrs = {a["key"]: a["value"] for a in _instantiate(client)["attributes"]}
    assert attrs["method"] == "instantiate"

    assert client.get("/broker/configs").json()["fee"] == "300"

    r = client.post(
        "/broker/execute",
        json={
            "sender": USER,
            "msg": {"request_hex_randomness": {"request_id": "r1", "num": 2}},
            "funds": [{"denom": DENOM, "amount": "600"}],
        },
    )
    assert r.status_code == 200, r.text
    (msg,) = r.json()["messages"]
    assert msg["kind"] == "beacon_request"
    assert msg["funds"] == [{"denom": DENOM, "amount": "300"}]
    assert client.get("/broker/commitments/count").json() == {"num": 1}
    assert len(client.get("/broker/commitments/pending", params={"limit": 5}).json()["commitments"]) == 1

    cid = make_commit_id(USER, 0)
    r = client.post(
        "/broker/execute",
        json={"sender": PROXY, "msg": {"nois_receive": {"callback": {"job_id": cid, "randomness": SEED.hex()}}}},
    )
    assert r.status_code == 200, r.text
    kinds = [m["kind"] for m in r.json()["messages"]]
    assert kinds == ["receive_hex_randomness", "bank_send"]
    assert client.get("/broker/commitments").json() == {"commitments": []}
    assert len(client.get("/broker/outbox").json()) == 3


def test_rest_errors_map_to_http(client):
    assert client.get("/broker/configs").status_code == 400
    _instantiate(client)

    r = client.post(
        "/broker/execute",
        json={
            "sender": USER,
            "msg": {"request_hex_randomness": {"request_id": "r1", "num": 1}},
            "funds": [{"denom": DENOM, "amount": "1"}],
        },
    )
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "VALIDATION_ERROR"

    r = client.post(
        "/broker/execute",
        json={"sender": USER, "msg": {"set_configs": {"bounty_denom": "x", "fee": 1, "callback_limit_gas": 1, "max_callback": 1}}},
    )
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "UNAUTHORIZED"

    r = client.post("/broker/execute", json={"sender": USER, "msg": {"no_such_thing": {}}})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "PARSE_ERROR"

    assert client.get("/broker/commitments", params={"limit": 1000}).status_code == 422


@pytest.mark.parametrize("num", [-1, 2**40])
def test_rest_out_of_range_num_is_client_error(client, num):
    _instantiate(client)
    r = client.post(
        "/broker/execute",
        json={
            "sender": USER,
            "msg": {"request_hex_randomness": {"request_id": "r1", "num": num}},
            "funds": [{"denom": DENOM, "amount": "600"}],
        },
    )
    assert r.status_code == 400, r.text
    assert r.json()["detail"]["code"] == "VALIDATION_ERROR"
    assert client.get("/broker/commitments/count").json() == {"num": 0}


def test_rest_request_from_malformed_sender(client):
    _instantiate(client)
    r = client.post(
        "/broker/execute",
        json={
            "sender": "x",
            "msg": {"request_hex_randomness": {"request_id": "r1", "num": 1}},
            "funds": [{"denom": DENOM, "amount": "600"}],
        },
    )
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "INVALID_ADDRESS"


def test_rest_bot_lookup(client):
    _instantiate(client)
    assert client.get(f"/broker/bots/{BOT}").json() is None
    client.post("/broker/execute", json={"sender": BOT, "msg": {"register_bot": {"hashed_api_key": "k", "moniker": "m"}}})
    assert client.get(f"/broker/bots/{BOT}").json()["moniker"] == "m"
    assert client.get("/broker/bots/NOT-VALID").status_code == 400


def test_jsonrpc_envelope(client):
    _instantiate(client)

    ok = _rpc(client, "broker.getConfigs")
    assert ok["result"]["owner"] == OWNER

    # positional single-object params, as the CLI sends them
    ok = _rpc(client, "broker.getCommitments", [{"limit": 3}])
    assert ok["result"] == {"commitments": []}

    missing = _rpc(client, "broker.nope")
    assert missing["error"]["code"] == -32601

    bad = _rpc(client, "broker.execute", {"msg": {"register_bot": {}}})
    assert bad["error"]["code"] == -32602

    denied = _rpc(
        client,
        "broker.execute",
        {"sender": USER, "msg": {"remove_bot": {"address": BOT}}},
    )
    assert denied["error"]["code"] == -32000
    assert denied["error"]["data"]["code"] == "UNAUTHORIZED"

    res = _rpc(
        client,
        "broker.execute",
        {"sender": USER, "msg": {"request_int_randomness": {"request_id": "d", "min": 1, "max": 6, "num": 1}},
         "funds": [{"denom": DENOM, "amount": 600}]},
    )
    assert res["result"]["messages"][0]["kind"] == "beacon_request"
    assert _rpc(client, "broker.getNumberOfCommitment")["result"] == {"num": 1}


def test_bind_to_external_registry(service):
    class Registry:
        def __init__(self):
            self.methods = {}

        def add_method(self, name, fn):
            self.methods[name] = fn

    reg = Registry()
    _bind_jsonrpc(service, reg)
    assert "broker.execute" in reg.methods
    assert reg.methods["broker.status"]()["instantiated"] is False
    assert reg.methods["broker.getBotInfo"](address=BOT) is None
