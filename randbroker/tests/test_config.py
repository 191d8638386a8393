import json

import pytest

from randbroker.config import Configs, InstantiateParams, NodeSettings

from .conftest import OWNER, PROXY


def test_configs_roundtrip_keeps_fee_as_string():
    c = Configs(bounty_denom="ueaura", fee=(1 << 100), callback_limit_gas=1, max_callback=3)
    d = c.to_dict()
    assert d["fee"] == str(1 << 100)
    assert Configs.from_dict(d) == c


@pytest.mark.parametrize(
    "kw",
    [
        dict(bounty_denom=""),
        dict(fee=-1),
        dict(fee=1 << 128),
        dict(max_callback=0),
        dict(callback_limit_gas=True),
    ],
)
def test_configs_validation(kw):
    with pytest.raises(ValueError):
        Configs(**kw).validate()


def test_instantiate_params_from_dict_accepts_string_amounts():
    p = InstantiateParams.from_dict({"nois_proxy": PROXY, "nois_fee": "300", "fee": "10"})
    assert (p.nois_fee, p.fee) == (300, 10)
    assert p.configs().fee == 10
    assert p.nois_configs().nois_proxy == PROXY
    p.validate()


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("RANDBROKER_STORE_URI", "sqlite:///tmp/x.db")
    monkeypatch.setenv("RANDBROKER_PORT", "9000")
    monkeypatch.setenv("RANDBROKER_OWNER", OWNER)
    monkeypatch.setenv("RANDBROKER_NOIS_PROXY", PROXY)
    monkeypatch.setenv("RANDBROKER_FEE", "25")
    s = NodeSettings.from_env()
    assert s.store_uri == "sqlite:///tmp/x.db"
    assert s.port == 9000
    assert s.instantiate is not None
    assert (s.instantiate.nois_proxy, s.instantiate.fee, s.instantiate.max_callback) == (PROXY, 25, 5)


def test_settings_from_env_without_proxy(monkeypatch):
    monkeypatch.delenv("RANDBROKER_NOIS_PROXY", raising=False)
    assert NodeSettings.from_env().instantiate is None


def test_settings_from_env_bad_int(monkeypatch):
    monkeypatch.setenv("RANDBROKER_PORT", "http")
    with pytest.raises(ValueError):
        NodeSettings.from_env()


def test_settings_from_yaml(tmp_path):
    p = tmp_path / "broker.yaml"
    p.write_text(
        "store_uri: memory://\n"
        "port: 8700\n"
        "log_level: debug\n"
        f"owner: {OWNER}\n"
        "instantiate:\n"
        f"  nois_proxy: {PROXY}\n"
        "  nois_fee: 300\n"
        "  max_callback: 2\n"
    )
    s = NodeSettings.from_file(str(p))
    assert s.port == 8700
    assert s.instantiate.max_callback == 2
    assert s.instantiate.nois_fee == 300


def test_settings_from_json_and_to_json(tmp_path):
    p = tmp_path / "broker.json"
    p.write_text(json.dumps({"port": 8701}))
    s = NodeSettings.from_file(str(p))
    assert s.port == 8701
    assert json.loads(s.to_json())["instantiate"] is None


def test_settings_require_owner_with_instantiate():
    s = NodeSettings(instantiate=InstantiateParams(nois_proxy=PROXY))
    with pytest.raises(ValueError):
        s.validate()
