"""Configuration loader. Reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    cache_ttl_seconds: float = 30.0
    max_hops: int = 10
    call_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class RiskConfig:
    safe_bps: int = 15_000
    caution_bps: int = 13_000


@dataclass(frozen=True)
class ChainConfig:
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30
    contracts: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UspdPriceConfig:
    url: str = "https://uspd.io/api/v1/price/eth-usd"
    timeout: float = 10.0


@dataclass(frozen=True)
class PythConfig:
    hermes_url: str = "https://hermes.pyth.network/v2/updates/price/latest"
    # ETH/USD
    feed_id: str = "ff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace"
    timeout: float = 10.0


@dataclass(frozen=True)
class PriceOracleConfig:
    provider: str = "uspd"
    uspd: UspdPriceConfig = field(default_factory=UspdPriceConfig)
    pyth: PythConfig = field(default_factory=PythConfig)


@dataclass(frozen=True)
class ApiConfig:
    default_chain_id: int = 11155111
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass(frozen=True)
class AppConfig:
    engine: EngineConfig = field(default_factory=EngineConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    chains: dict[int, ChainConfig] = field(default_factory=dict)
    price_oracle: PriceOracleConfig = field(default_factory=PriceOracleConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_engine(raw: dict[str, Any]) -> EngineConfig:
    return EngineConfig(
        cache_ttl_seconds=float(raw.get("cache_ttl_seconds", 30.0)),
        max_hops=int(raw.get("max_hops", 10)),
        call_timeout_seconds=float(raw.get("call_timeout_seconds", 10.0)),
    )


def _build_risk(raw: dict[str, Any]) -> RiskConfig:
    return RiskConfig(
        safe_bps=int(raw.get("safe_bps", 15_000)),
        caution_bps=int(raw.get("caution_bps", 13_000)),
    )


def _build_chains(raw: dict[Any, Any]) -> dict[int, ChainConfig]:
    chains: dict[int, ChainConfig] = {}
    for chain_id, cfg in raw.items():
        # Unset ${VAR} endpoints interpolate to "" and are dropped.
        endpoints = tuple(e for e in cfg.get("rpc_endpoints", []) if e)
        chains[int(chain_id)] = ChainConfig(
            rpc_endpoints=endpoints,
            rpc_timeout=int(cfg.get("rpc_timeout", 30)),
            contracts={k: v for k, v in dict(cfg.get("contracts", {})).items() if v},
        )
    return chains


def _build_price_oracle(raw: dict[str, Any]) -> PriceOracleConfig:
    uspd_raw = raw.get("uspd", {})
    pyth_raw = raw.get("pyth", {})
    return PriceOracleConfig(
        provider=raw.get("provider", "uspd"),
        uspd=UspdPriceConfig(
            url=uspd_raw.get("url", UspdPriceConfig.url),
            timeout=float(uspd_raw.get("timeout", UspdPriceConfig.timeout)),
        ),
        pyth=PythConfig(
            hermes_url=pyth_raw.get("hermes_url", PythConfig.hermes_url),
            feed_id=pyth_raw.get("feed_id", PythConfig.feed_id),
            timeout=float(pyth_raw.get("timeout", PythConfig.timeout)),
        ),
    )


def _build_api(raw: dict[str, Any]) -> ApiConfig:
    return ApiConfig(
        default_chain_id=int(raw.get("default_chain_id", ApiConfig.default_chain_id)),
        host=raw.get("host", ApiConfig.host),
        port=int(raw.get("port", ApiConfig.port)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        engine=_build_engine(raw.get("engine", {})),
        risk=_build_risk(raw.get("risk", {})),
        chains=_build_chains(raw.get("chains", {})),
        price_oracle=_build_price_oracle(raw.get("price_oracle", {})),
        api=_build_api(raw.get("api", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chains:
        raise ValueError("At least one chain must be configured")

    for chain_id, chain in cfg.chains.items():
        if not chain.rpc_endpoints:
            raise ValueError(f"Chain {chain_id} has no RPC endpoints")
        if "stabilizer" not in chain.contracts:
            raise ValueError(f"Chain {chain_id} has no stabilizer contract address")

    if cfg.api.default_chain_id not in cfg.chains:
        raise ValueError(
            f"Default chain {cfg.api.default_chain_id} references unknown chain"
        )

    if cfg.price_oracle.provider not in ("uspd", "pyth"):
        raise ValueError(f"Unknown price oracle provider '{cfg.price_oracle.provider}'")

    if cfg.engine.max_hops < 1:
        raise ValueError("engine.max_hops must be at least 1")

    if cfg.risk.caution_bps > cfg.risk.safe_bps:
        raise ValueError("risk.caution_bps must not exceed risk.safe_bps")
