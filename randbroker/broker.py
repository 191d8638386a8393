"""
Protocol orchestrator.

:class:`RandomnessBroker` is the single entry point for every state
transition. Each call is synchronous and all-or-nothing: handlers work
against an :class:`~randbroker.store.overlay.Overlay`, and the staged writes
reach the backend only if the handler returns. Any :class:`BrokerError`
leaves persisted state untouched and yields no outbound messages.

Operations
----------
instantiate                         create config records, record owner
SetConfigs / SetTimeConfigs /
SetNoisConfigs / RemoveBot          owner only
RegisterBot / UpdateBot             any / registered bot (cooldown on update)
RequestHexRandomness /
RequestIntRandomness                admission; emits one beacon request
AddRandomness                       registered bot; signed oracle report,
                                    fulfills every commitment in its window
NoisReceive                         beacon proxy only; fulfills one commitment

Outbound messages are returned in a :class:`~randbroker.types.Response`
outbox for the host to deliver; the broker never awaits them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .adapters.accounts import AccountApi, Bech32Accounts
from .config import Configs, InstantiateParams, NoisConfigs, TimeConfigs
from .constants import MAX_NUM, MAX_QUERY_LIMIT, MIN_NUM, SEED_LEN, UINT128_MAX
from .errors import (
    AlreadyInstantiated,
    BrokerError,
    FeeOverflow,
    InvalidAddress,
    InvalidApiKey,
    InvalidProxyAddress,
    InvalidRandomness,
    NotInstantiated,
    SignatureVerificationFailed,
    Unauthorized,
    UnauthorizedReceive,
    UnregisteredAddress,
    ValidationError,
)
from .expand import generate_hex_randomness, generate_int_randomness
from .metrics import METRICS, Metrics
from .msg import (
    AddRandomness,
    ExecuteMsg,
    GetBotInfo,
    GetCommitments,
    GetConfigs,
    GetNumberOfCommitment,
    GetPendingCommitments,
    NoisReceive,
    QueryMsg,
    RegisterBot,
    RemoveBot,
    RequestHexRandomness,
    RequestIntRandomness,
    SetConfigs,
    SetNoisConfigs,
    SetTimeConfigs,
    UpdateBot,
)
from .oracle.payload import decode_randomorg_data
from .oracle.verify import SignatureVerifier
from .registry import BotRegistry, CommitmentRegistry, NonceTable, make_commit_id
from .store import KeyValue, TransactionalKeyValue
from .store.kv import (
    META_CONFIGS,
    META_CONTRACT,
    META_NOIS_CONFIGS,
    META_OWNER,
    META_TIME_CONFIGS,
    Buckets,
)
from .store.overlay import Overlay
from .types import (
    BankSend,
    BeaconRequest,
    Callback,
    Coin,
    Commitment,
    DataRequest,
    DataType,
    Env,
    HexCallback,
    IntCallback,
    MessageInfo,
    Response,
)
from .version import CONTRACT_NAME, __version__

log = logging.getLogger(__name__)


@dataclass
class _State:
    """Registries and loaded policy records for one call."""

    buckets: Buckets
    commitments: CommitmentRegistry
    bots: BotRegistry
    nonces: NonceTable

    @classmethod
    def over(cls, kv: KeyValue) -> "_State":
        b = Buckets(kv)
        return cls(b, CommitmentRegistry(b), BotRegistry(b), NonceTable(b))

    def _load(self, name: bytes) -> Dict[str, Any]:
        rec = self.buckets.get_meta(name)
        if rec is None:
            raise NotInstantiated()
        return rec

    def configs(self) -> Configs:
        return Configs.from_dict(self._load(META_CONFIGS))

    def time_configs(self) -> TimeConfigs:
        return TimeConfigs.from_dict(self._load(META_TIME_CONFIGS))

    def nois_configs(self) -> NoisConfigs:
        return NoisConfigs.from_dict(self._load(META_NOIS_CONFIGS))

    def owner(self) -> str:
        owner = self.buckets.get_meta(META_OWNER)
        if owner is None:
            raise NotInstantiated()
        return str(owner)


def build_callback(seed: bytes, c: Commitment, gas_limit: int) -> Callback:
    """Expand `seed` under the commitment id and address the result to its owner."""
    req = c.data_request
    if req.data_type is DataType.HEX:
        values = generate_hex_randomness(seed, c.id, req.num)
        return HexCallback(c.owner, c.request_id, tuple(values), gas_limit=gas_limit)
    if req.data_type is DataType.INT:
        ints = generate_int_randomness(seed, c.id, req.min, req.max, req.num)
        return IntCallback(c.owner, c.request_id, tuple(ints), gas_limit=gas_limit)
    raise ValueError(f"unknown data type: {req.data_type!r}")


def _checked_add(a: int, b: int) -> int:
    total = a + b
    if total > UINT128_MAX:
        raise FeeOverflow()
    return total


def _validated(fn: Callable[[], None]) -> None:
    try:
        fn()
    except ValueError as e:
        raise ValidationError(str(e)) from e


def _check_num(num: int) -> None:
    if isinstance(num, bool) or not isinstance(num, int) or not MIN_NUM <= num <= MAX_NUM:
        raise ValidationError(f"number of randomness must be in range {MIN_NUM}..{MAX_NUM}")


def _data_request(build: Callable[[], DataRequest]) -> DataRequest:
    try:
        return build()
    except (TypeError, ValueError) as e:
        raise ValidationError(str(e)) from e


class RandomnessBroker:
    """
    Args:
        store:    transactional KV backend holding all broker state.
        accounts: address validator (defaults to a checksummed Bech32 decode).
        verifier: oracle signature gate (defaults to the pinned oracle key).
        metrics:  Prometheus instruments (defaults to the process singleton).
    """

    def __init__(
        self,
        store: TransactionalKeyValue,
        *,
        accounts: Optional[AccountApi] = None,
        verifier: Optional[SignatureVerifier] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self.store = store
        self.accounts: AccountApi = accounts or Bech32Accounts()
        self.verifier = verifier or SignatureVerifier.from_pinned()
        self.metrics = metrics or METRICS
        self._handlers: Dict[type, Callable[[_State, Env, MessageInfo, Any], Response]] = {
            SetConfigs: self._set_configs,
            SetTimeConfigs: self._set_time_configs,
            SetNoisConfigs: self._set_nois_configs,
            RegisterBot: self._register_bot,
            UpdateBot: self._update_bot,
            RemoveBot: self._remove_bot,
            RequestHexRandomness: self._request_hex,
            RequestIntRandomness: self._request_int,
            AddRandomness: self._add_randomness,
            NoisReceive: self._nois_receive,
        }

    # ------------------------------------------------------------------ entry points

    def instantiate(self, env: Env, info: MessageInfo, params: InstantiateParams) -> Response:
        return self._atomic(lambda st: self._instantiate(st, env, info, params))

    def execute(self, env: Env, info: MessageInfo, msg: ExecuteMsg) -> Response:
        handler = self._handlers.get(type(msg))
        if handler is None:
            raise TypeError(f"unsupported execute message: {type(msg).__name__}")
        with self.metrics.execute_timer():
            return self._atomic(lambda st: handler(st, env, info, msg))

    def reply(self, env: Env, reply_id: int, ok: bool, error: Optional[str] = None) -> Response:
        """Delivery outcome of an outbound message. Recorded, never acted upon."""
        if ok:
            log.debug("reply id=%d ok", reply_id)
        else:
            log.info("reply id=%d failed: %s", reply_id, error)
        return Response()

    def _atomic(self, fn: Callable[[_State], Response]) -> Response:
        overlay = Overlay(self.store)
        try:
            resp = fn(_State.over(overlay))
        except BrokerError as e:
            overlay.discard()
            log.info("rejected %s: %s", e.code, e.message)
            raise
        overlay.flush()
        return resp

    # ------------------------------------------------------------------ admin

    def _instantiate(self, st: _State, env: Env, info: MessageInfo, params: InstantiateParams) -> Response:
        if st.buckets.get_meta(META_OWNER) is not None:
            raise AlreadyInstantiated()
        try:
            proxy = self.accounts.addr_validate(params.nois_proxy)
        except InvalidAddress as e:
            raise InvalidProxyAddress(params.nois_proxy) from e
        _validated(params.validate)

        configs = params.configs()
        time_configs = params.time_configs()
        nois_configs = NoisConfigs(nois_proxy=proxy, nois_fee=params.nois_fee)
        st.buckets.put_meta(META_CONFIGS, configs.to_dict())
        st.buckets.put_meta(META_TIME_CONFIGS, time_configs.to_dict())
        st.buckets.put_meta(META_NOIS_CONFIGS, nois_configs.to_dict())
        st.buckets.put_meta(META_OWNER, info.sender)
        st.buckets.put_meta(META_CONTRACT, {"contract": CONTRACT_NAME, "version": __version__})
        log.info("instantiated owner=%s proxy=%s denom=%s", info.sender, proxy, configs.bounty_denom)

        return (
            Response()
            .add_attribute("method", "instantiate")
            .add_attribute("bounty_denom", configs.bounty_denom)
            .add_attribute("fee", configs.fee)
            .add_attribute("callback_limit_gas", configs.callback_limit_gas)
            .add_attribute("time_expired", time_configs.time_expired)
            .add_attribute("time_per_block", time_configs.time_per_block)
            .add_attribute("nois_proxy", proxy)
            .add_attribute("nois_fee", nois_configs.nois_fee)
            .add_attribute("owner", info.sender)
        )

    def _ensure_owner(self, st: _State, info: MessageInfo) -> None:
        if st.owner() != info.sender:
            raise Unauthorized(sender=info.sender)

    def _set_configs(self, st: _State, env: Env, info: MessageInfo, msg: SetConfigs) -> Response:
        self._ensure_owner(st, info)
        configs = Configs(
            bounty_denom=msg.bounty_denom,
            fee=msg.fee,
            callback_limit_gas=msg.callback_limit_gas,
            max_callback=msg.max_callback,
        )
        _validated(configs.validate)
        st.buckets.put_meta(META_CONFIGS, configs.to_dict())
        return (
            Response()
            .add_attribute("action", "set_config")
            .add_attribute("bounty_denom", configs.bounty_denom)
            .add_attribute("fee", configs.fee)
            .add_attribute("callback_limit_gas", configs.callback_limit_gas)
            .add_attribute("max_callback", configs.max_callback)
            .add_attribute("owner", info.sender)
        )

    def _set_time_configs(self, st: _State, env: Env, info: MessageInfo, msg: SetTimeConfigs) -> Response:
        self._ensure_owner(st, info)
        tc = TimeConfigs(time_expired=msg.time_expired, time_per_block=msg.time_per_block)
        _validated(tc.validate)
        st.buckets.put_meta(META_TIME_CONFIGS, tc.to_dict())
        return (
            Response()
            .add_attribute("action", "set_time_config")
            .add_attribute("time_expired", tc.time_expired)
            .add_attribute("time_per_block", tc.time_per_block)
            .add_attribute("owner", info.sender)
        )

    def _set_nois_configs(self, st: _State, env: Env, info: MessageInfo, msg: SetNoisConfigs) -> Response:
        proxy = self.accounts.addr_validate(msg.nois_proxy)
        self._ensure_owner(st, info)
        nc = NoisConfigs(nois_proxy=proxy, nois_fee=msg.nois_fee)
        _validated(nc.validate)
        st.buckets.put_meta(META_NOIS_CONFIGS, nc.to_dict())
        return (
            Response()
            .add_attribute("action", "set_nois_config")
            .add_attribute("nois_proxy", proxy)
            .add_attribute("nois_fee", nc.nois_fee)
            .add_attribute("owner", info.sender)
        )

    # ------------------------------------------------------------------ bots

    def _register_bot(self, st: _State, env: Env, info: MessageInfo, msg: RegisterBot) -> Response:
        st.bots.register(info.sender, msg.hashed_api_key, msg.moniker, env.time)
        return (
            Response()
            .add_attribute("action", "register_bot")
            .add_attribute("hashed_api_key", msg.hashed_api_key)
            .add_attribute("moniker", msg.moniker)
            .add_attribute("bot_address", info.sender)
        )

    def _update_bot(self, st: _State, env: Env, info: MessageInfo, msg: UpdateBot) -> Response:
        tc = st.time_configs()
        st.bots.update(
            info.sender,
            msg.hashed_api_key,
            msg.moniker,
            env.time,
            time_per_block=tc.time_per_block,
            time_expired=tc.time_expired,
        )
        return (
            Response()
            .add_attribute("action", "update_bot")
            .add_attribute("hashed_api_key", msg.hashed_api_key)
            .add_attribute("moniker", msg.moniker)
            .add_attribute("bot_address", info.sender)
        )

    def _remove_bot(self, st: _State, env: Env, info: MessageInfo, msg: RemoveBot) -> Response:
        address = self.accounts.addr_validate(msg.address)
        self._ensure_owner(st, info)
        existed = st.bots.remove(address)
        log.info("bot removed address=%s existed=%s", address, existed)
        return (
            Response()
            .add_attribute("action", "remove_bot")
            .add_attribute("bot_addr", address)
            .add_attribute("owner", info.sender)
        )

    # ------------------------------------------------------------------ admission

    def _request_hex(self, st: _State, env: Env, info: MessageInfo, msg: RequestHexRandomness) -> Response:
        _check_num(msg.num)
        req = _data_request(lambda: DataRequest.of_hex(msg.num))
        return self._request(st, env, info, msg.request_id, req)

    def _request_int(self, st: _State, env: Env, info: MessageInfo, msg: RequestIntRandomness) -> Response:
        _check_num(msg.num)
        req = _data_request(lambda: DataRequest.of_int(msg.min, msg.max, msg.num))
        if req.min > req.max:
            raise ValidationError(f"min must be <= max (got {req.min} > {req.max})")
        return self._request(st, env, info, msg.request_id, req)

    def _request(self, st: _State, env: Env, info: MessageInfo, request_id: str, req: DataRequest) -> Response:
        owner = self.accounts.addr_validate(info.sender)

        configs = st.configs()
        tc = st.time_configs()
        nc = st.nois_configs()

        denom = configs.bounty_denom
        sent = info.amount_of(denom)
        if sent is None:
            raise ValidationError(f"Expected denom {denom}")
        total_fee = _checked_add(configs.fee, nc.nois_fee)
        if sent < total_fee:
            raise ValidationError(f"Insufficient fee! required {total_fee}{denom}")

        commit_id = make_commit_id(owner, st.nonces.current(owner))
        commit_time = env.time + tc.time_per_block
        commitment = Commitment(
            id=commit_id,
            request_id=request_id,
            owner=owner,
            commit_time=commit_time,
            expired_time=commit_time + tc.time_expired,
            data_request=req,
        )
        try:
            st.commitments.push(commitment)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        st.nonces.increment(owner)

        funds = (Coin(denom, nc.nois_fee),) if nc.nois_fee else ()
        self.metrics.record_request(req.data_type.value)
        log.info(
            "request admitted id=%s owner=%s type=%s num=%d window=[%d,%d]",
            commit_id, owner, req.data_type.value, req.num, commitment.commit_time, commitment.expired_time,
        )
        return (
            Response()
            .add_message(BeaconRequest(contract_addr=nc.nois_proxy, job_id=commit_id, funds=funds))
            .add_attribute("action", "request_randomness")
            .add_attribute("commitment_id", commit_id)
            .add_attribute("request_id", request_id)
            .add_attribute("user", owner)
        )

    # ------------------------------------------------------------------ fulfillment

    def _add_randomness(self, st: _State, env: Env, info: MessageInfo, msg: AddRandomness) -> Response:
        bot = st.bots.get(info.sender)
        if bot is None:
            self.metrics.record_oracle_report("unregistered")
            raise UnregisteredAddress(address=info.sender)

        try:
            ok = self.verifier.verify(msg.random_value, msg.signature)
        except BrokerError:
            self.metrics.record_oracle_report("parse_error")
            raise
        if not ok:
            self.metrics.record_oracle_report("bad_signature")
            raise SignatureVerificationFailed()

        configs = st.configs()
        try:
            payload = decode_randomorg_data(msg.random_value)
        except BrokerError:
            self.metrics.record_oracle_report("parse_error")
            raise
        if payload.hashed_api_key != bot.hashed_api_key:
            self.metrics.record_oracle_report("bad_api_key")
            raise InvalidApiKey(address=info.sender)
        try:
            completion_time = payload.completion_timestamp()
        except BrokerError:
            self.metrics.record_oracle_report("parse_error")
            raise

        selection = st.commitments.select(completion_time, configs.max_callback)
        seed = payload.seed()

        resp = Response()
        total_bounty = 0
        for c in selection.matched:
            resp.add_message(build_callback(seed, c, configs.callback_limit_gas))
            total_bounty = _checked_add(total_bounty, configs.fee)
        if total_bounty:
            resp.add_message(BankSend(to_address=info.sender, amount=(Coin(configs.bounty_denom, total_bounty),)))

        self.metrics.record_oracle_report("accepted")
        self.metrics.observe_batch(len(selection.matched))
        self.metrics.record_fulfillments("oracle", len(selection.matched))
        self.metrics.record_expired(len(selection.expired))
        log.info(
            "oracle report bot=%s serial=%d t=%d matched=%d expired=%d bounty=%d",
            info.sender, payload.serial_number, completion_time,
            len(selection.matched), len(selection.expired), total_bounty,
        )
        return (
            resp.add_attribute("action", "add_randomness")
            .add_attribute("random_value", msg.random_value)
            .add_attribute("signature", msg.signature)
            .add_attribute("bot", info.sender)
            .add_attribute("matched", len(selection.matched))
            .add_attribute("expired", len(selection.expired))
        )

    def _nois_receive(self, st: _State, env: Env, info: MessageInfo, msg: NoisReceive) -> Response:
        configs = st.configs()
        nc = st.nois_configs()
        if info.sender != nc.nois_proxy:
            self.metrics.record_beacon_callback("unauthorized")
            raise UnauthorizedReceive(sender=info.sender)

        job_id = msg.callback.job_id
        seed = msg.callback.randomness
        if len(seed) != SEED_LEN:
            self.metrics.record_beacon_callback("invalid")
            raise InvalidRandomness(length=len(seed))

        commitment = st.commitments.take(job_id)
        if commitment is None:
            self.metrics.record_beacon_callback("noop")
            log.debug("beacon callback for non-pending job %s ignored", job_id)
            return (
                Response()
                .add_attribute("action", "nois_receive")
                .add_attribute("message", "commitment has been made")
                .add_attribute("nois_proxy_address", info.sender)
            )

        resp = Response().add_message(build_callback(seed, commitment, configs.callback_limit_gas))
        # Beacon-path bounty goes to the owner identity, not to a bot.
        if configs.fee:
            resp.add_message(BankSend(to_address=st.owner(), amount=(Coin(configs.bounty_denom, configs.fee),)))

        self.metrics.record_beacon_callback("fulfilled")
        self.metrics.record_fulfillments("beacon")
        log.info("beacon fulfilled id=%s owner=%s", job_id, commitment.owner)
        return (
            resp.add_attribute("job_id", job_id)
            .add_attribute("randomness", seed.hex())
            .add_attribute("action", "nois_receive")
            .add_attribute("nois_proxy_address", info.sender)
        )

    # ------------------------------------------------------------------ queries

    def query(self, msg: QueryMsg) -> Any:
        """Read-only view over committed state; returns JSON-safe values."""
        st = _State.over(self.store)
        if isinstance(msg, GetPendingCommitments):
            limit = min(max(int(msg.limit), 0), MAX_QUERY_LIMIT)
            return {"commitments": [c.to_dict() for c in st.commitments.pending(limit)]}
        if isinstance(msg, GetCommitments):
            limit = min(max(int(msg.limit), 0), MAX_QUERY_LIMIT)
            return {"commitments": [c.to_dict() for c in st.commitments.sequence(limit)]}
        if isinstance(msg, GetNumberOfCommitment):
            return {"num": len(st.commitments)}
        if isinstance(msg, GetBotInfo):
            address = self.accounts.addr_validate(msg.address)
            bot = st.bots.get(address)
            return bot.to_dict() if bot is not None else None
        if isinstance(msg, GetConfigs):
            configs = st.configs()
            tc = st.time_configs()
            nc = st.nois_configs()
            return {
                "owner": st.owner(),
                "nois_proxy": nc.nois_proxy,
                "nois_fee": str(nc.nois_fee),
                "time_expired": tc.time_expired,
                "time_per_block": tc.time_per_block,
                "bounty_denom": configs.bounty_denom,
                "fee": str(configs.fee),
                "callback_limit_gas": configs.callback_limit_gas,
                "max_callback": configs.max_callback,
            }
        raise TypeError(f"unsupported query message: {type(msg).__name__}")


__all__ = ["RandomnessBroker", "build_callback"]
