"""
randbroker.cli
--------------

Convenience CLI for running and talking to a broker node.

Commands (requires `typer` and `requests`):
  - serve          : Run the HTTP/JSON-RPC node (uvicorn).
  - status         : Instantiation state and outbox depth.
  - configs        : Show the current policy records.
  - commitments    : List the ordered commitment sequence.
  - pending        : List the pending-by-id index.
  - count          : Number of queued commitments.
  - bot            : Show a registered bot.
  - request-hex    : Request N hex values (attach the bounty with --amount).
  - request-int    : Request N bounded integers.
  - register-bot   : Register the sender as a reporting bot.
  - update-bot     : Rotate a bot's api key hash / moniker.
  - add-randomness : Submit a signed oracle report from a file.
  - verify         : Offline check of an oracle report signature.
  - expand         : Offline expansion of a 32-byte seed.

Environment:
  RANDBROKER_RPC_URL may be set to override the default RPC endpoint.

Example:
  python -m randbroker.cli configs
  python -m randbroker.cli request-hex --sender aura1... --request-id r1 --num 3 --amount 600
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Sequence

import requests
import typer

from ..config import NodeSettings
from ..errors import BrokerError
from ..expand import generate_hex_randomness, generate_int_randomness
from ..oracle.verify import verify_message

__all__ = ["app", "main"]

_DEFAULT_RPC = os.getenv("RANDBROKER_RPC_URL") or "http://127.0.0.1:8650/broker/rpc"


def _rpc_call(url: str, method: str, params: Optional[Dict[str, Any]] = None, timeout: float = 10.0) -> Any:
    """
    Minimal JSON-RPC 2.0 helper.
    """
    body = {
        "jsonrpc": "2.0",
        "id": 1,
        "method": method,
        "params": [params or {}],
    }
    try:
        r = requests.post(url, json=body, timeout=timeout)
    except requests.RequestException as e:
        raise SystemExit(f"RPC POST failed: {e}")
    if r.status_code != 200:
        raise SystemExit(f"RPC error HTTP {r.status_code}: {r.text}")
    try:
        data = r.json()
    except ValueError:
        raise SystemExit(f"RPC response not JSON: {r.text}")
    if "error" in data and data["error"]:
        raise SystemExit(f"RPC error: {json.dumps(data['error'], indent=2)}")
    return data.get("result")


def _execute(rpc: str, sender: str, msg: Dict[str, Any], funds: Optional[List[Dict[str, Any]]] = None) -> None:
    res = _rpc_call(rpc, "broker.execute", {"sender": sender, "msg": msg, "funds": funds or []})
    typer.echo(json.dumps(res, indent=2))


def _bounty(denom: str, amount: int) -> List[Dict[str, Any]]:
    return [{"denom": denom, "amount": str(amount)}] if amount else []


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


app = typer.Typer(
    name="randbroker",
    help="Verifiable-randomness broker CLI (request → beacon/oracle → callback).",
    no_args_is_help=True,
    add_completion=False,
)


def _opt_rpc() -> str:
    return typer.Option(_DEFAULT_RPC, "--rpc", help=f"JSON-RPC endpoint (default: {_DEFAULT_RPC})")  # type: ignore[return-value]


# -----------------------
# Node
# -----------------------


@app.command("serve")
def cmd_serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML settings file (default: env)."),
    host: Optional[str] = typer.Option(None, "--host", help="Override bind host."),
    port: Optional[int] = typer.Option(None, "--port", help="Override bind port."),
) -> None:
    """Run the broker node with REST, JSON-RPC and /metrics."""
    import uvicorn

    from ..adapters.rpc_mount import create_app
    from ..adapters.service import BrokerService

    settings = NodeSettings.from_file(config) if config else NodeSettings.from_env()
    _configure_logging(settings.log_level)
    service = BrokerService.from_settings(settings)
    logging.getLogger("randbroker.cli").info(
        "starting broker store=%s instantiated=%s", settings.store_uri, service.is_instantiated()
    )
    uvicorn.run(
        create_app(service),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


# -----------------------
# Queries
# -----------------------


@app.command("status")
def cmd_status(rpc: str = _opt_rpc()) -> None:
    """Show instantiation state, configs and outbox depth."""
    typer.echo(json.dumps(_rpc_call(rpc, "broker.status"), indent=2))


@app.command("configs")
def cmd_configs(rpc: str = _opt_rpc()) -> None:
    """Show fees, windows, limits, beacon proxy and owner."""
    typer.echo(json.dumps(_rpc_call(rpc, "broker.getConfigs"), indent=2))


@app.command("commitments")
def cmd_commitments(
    limit: int = typer.Option(30, "--limit", "-n", min=0, max=100, help="Max number of records."),
    rpc: str = _opt_rpc(),
) -> None:
    """List queued commitments, oldest first."""
    typer.echo(json.dumps(_rpc_call(rpc, "broker.getCommitments", {"limit": limit}), indent=2))


@app.command("pending")
def cmd_pending(
    limit: int = typer.Option(30, "--limit", "-n", min=0, max=100, help="Max number of records."),
    rpc: str = _opt_rpc(),
) -> None:
    """List pending commitments in ascending id order."""
    typer.echo(json.dumps(_rpc_call(rpc, "broker.getPendingCommitments", {"limit": limit}), indent=2))


@app.command("count")
def cmd_count(rpc: str = _opt_rpc()) -> None:
    typer.echo(json.dumps(_rpc_call(rpc, "broker.getNumberOfCommitment"), indent=2))


@app.command("bot")
def cmd_bot(address: str = typer.Argument(..., help="Bot account address."), rpc: str = _opt_rpc()) -> None:
    typer.echo(json.dumps(_rpc_call(rpc, "broker.getBotInfo", {"address": address}), indent=2))


# -----------------------
# Writes
# -----------------------


@app.command("request-hex")
def cmd_request_hex(
    sender: str = typer.Option(..., "--sender", "-s", help="Requesting account."),
    request_id: str = typer.Option(..., "--request-id", "-r", help="Caller-chosen correlation id."),
    num: int = typer.Option(1, "--num", "-n", help="Number of 32-byte hex values (1..256)."),
    denom: str = typer.Option("ueaura", "--denom", help="Bounty denomination."),
    amount: int = typer.Option(0, "--amount", "-a", help="Bounty attached (fee + beacon fee)."),
    rpc: str = _opt_rpc(),
) -> None:
    """Request hex randomness."""
    msg = {"request_hex_randomness": {"request_id": request_id, "num": num}}
    _execute(rpc, sender, msg, _bounty(denom, amount))


@app.command("request-int")
def cmd_request_int(
    sender: str = typer.Option(..., "--sender", "-s"),
    request_id: str = typer.Option(..., "--request-id", "-r"),
    min_value: int = typer.Option(..., "--min", help="Inclusive lower bound."),
    max_value: int = typer.Option(..., "--max", help="Inclusive upper bound."),
    num: int = typer.Option(1, "--num", "-n"),
    denom: str = typer.Option("ueaura", "--denom"),
    amount: int = typer.Option(0, "--amount", "-a"),
    rpc: str = _opt_rpc(),
) -> None:
    """Request integers uniformly drawn from [min, max]."""
    msg = {"request_int_randomness": {"request_id": request_id, "min": min_value, "max": max_value, "num": num}}
    _execute(rpc, sender, msg, _bounty(denom, amount))


@app.command("register-bot")
def cmd_register_bot(
    sender: str = typer.Option(..., "--sender", "-s", help="Bot account."),
    hashed_api_key: str = typer.Option(..., "--hashed-api-key", "-k"),
    moniker: str = typer.Option(..., "--moniker", "-m"),
    rpc: str = _opt_rpc(),
) -> None:
    _execute(rpc, sender, {"register_bot": {"hashed_api_key": hashed_api_key, "moniker": moniker}})


@app.command("update-bot")
def cmd_update_bot(
    sender: str = typer.Option(..., "--sender", "-s", help="Bot account."),
    hashed_api_key: str = typer.Option(..., "--hashed-api-key", "-k"),
    moniker: str = typer.Option(..., "--moniker", "-m"),
    rpc: str = _opt_rpc(),
) -> None:
    _execute(rpc, sender, {"update_bot": {"hashed_api_key": hashed_api_key, "moniker": moniker}})


@app.command("add-randomness")
def cmd_add_randomness(
    sender: str = typer.Option(..., "--sender", "-s", help="Registered bot account."),
    report: str = typer.Option(..., "--report", help='JSON file: {"random": {...}, "signature": "<base64>"}'),
    rpc: str = _opt_rpc(),
) -> None:
    """
    Submit a signed oracle report.

    The `random` object is re-serialized compactly; pass `random_value` as a
    string instead when the exact signed text must be preserved.
    """
    random_value, signature = _load_report(report)
    _execute(rpc, sender, {"add_randomness": {"random_value": random_value, "signature": signature}})


# -----------------------
# Offline helpers
# -----------------------


def _load_report(path: str) -> tuple[str, str]:
    with open(path, "r", encoding="utf-8") as f:
        doc = json.load(f)
    if "random_value" in doc:
        random_value = doc["random_value"]
    else:
        random_value = json.dumps(doc["random"], separators=(",", ":"))
    return random_value, doc["signature"]


@app.command("verify")
def cmd_verify(report: str = typer.Option(..., "--report", help="Report file (see add-randomness).")) -> None:
    """Check a report's signature against the pinned oracle key."""
    random_value, signature = _load_report(report)
    try:
        ok = verify_message(random_value, signature)
    except BrokerError as e:
        typer.echo(json.dumps(e.to_dict(), indent=2), err=True)
        raise typer.Exit(code=2)
    typer.echo(json.dumps({"valid": ok}))
    if not ok:
        raise typer.Exit(code=1)


@app.command("expand")
def cmd_expand(
    seed: str = typer.Argument(..., help="32-byte seed as hex."),
    key: str = typer.Option(..., "--key", "-k", help="Diversification key (commitment id)."),
    num: int = typer.Option(1, "--num", "-n", min=1, max=256),
    min_value: Optional[int] = typer.Option(None, "--min", help="Emit integers in [min, max]."),
    max_value: Optional[int] = typer.Option(None, "--max"),
) -> None:
    """Reproduce the values a callback would carry for a seed and key."""
    try:
        raw = bytes.fromhex(seed.removeprefix("0x"))
    except ValueError:
        raise typer.BadParameter("seed must be hex", param_hint="seed")
    if (min_value is None) != (max_value is None):
        raise typer.BadParameter("--min and --max go together")
    try:
        if min_value is None:
            values: Sequence[Any] = generate_hex_randomness(raw, key, num)
        else:
            values = generate_int_randomness(raw, key, min_value, max_value, num)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    typer.echo(json.dumps(list(values), indent=2))


def main(argv: Optional[Sequence[str]] = None) -> None:  # pragma: no cover - thin wrapper
    """Entry-point to run as `python -m randbroker.cli` or the `randbroker` script."""
    try:
        app(args=list(argv) if argv is not None else None, prog_name="randbroker")
    except KeyboardInterrupt:
        typer.echo("", err=True)
        sys.exit(130)


if __name__ == "__main__":  # pragma: no cover
    main()
