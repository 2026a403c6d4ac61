"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from collections import Counter
from pathlib import Path

import pytest

from uspd_readmodel.cache import ResultCache
from uspd_readmodel.config import (
    ApiConfig,
    AppConfig,
    ChainConfig,
    EngineConfig,
    PriceOracleConfig,
    PythConfig,
    RiskConfig,
    UspdPriceConfig,
)
from uspd_readmodel.exceptions import InvalidChain, PriceUnavailable
from uspd_readmodel.models import PriceAttestation, ProviderPosition
from uspd_readmodel.services import AggregationService

SEPOLIA = 11155111

STABILIZER = "0x1111111111111111111111111111111111111111"
ESCROW_1 = "0x000000000000000000000000000000000000e001"
ESCROW_2 = "0x000000000000000000000000000000000000e002"
POSITION_ESCROW = "0x000000000000000000000000000000000000b001"

# $2000.00000000 with 8 decimals.
ETH_USD_2000 = 2000 * 10**8


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
        contracts={
            "stabilizer": STABILIZER,
            "reporter": "0x2222222222222222222222222222222222222222",
            "cuspd_token": "0x3333333333333333333333333333333333333333",
            "rate_contract": "0x4444444444444444444444444444444444444444",
        },
    )


@pytest.fixture()
def sample_app_config(sample_chain_config: ChainConfig) -> AppConfig:
    return AppConfig(
        engine=EngineConfig(cache_ttl_seconds=30.0, max_hops=10, call_timeout_seconds=5.0),
        risk=RiskConfig(),
        chains={SEPOLIA: sample_chain_config},
        price_oracle=PriceOracleConfig(
            provider="uspd",
            uspd=UspdPriceConfig(url="https://price.example.com/eth-usd"),
            pyth=PythConfig(hermes_url="https://hermes.example.com"),
        ),
        api=ApiConfig(default_chain_id=SEPOLIA),
    )


SAMPLE_YAML = textwrap.dedent("""\
    engine:
      cache_ttl_seconds: 15
      max_hops: 5
      call_timeout_seconds: 3
    risk:
      safe_bps: 16000
      caution_bps: 12500
    chains:
      11155111:
        rpc_endpoints: ["https://rpc.example.com", ""]
        rpc_timeout: 10
        contracts:
          stabilizer: "0x1111111111111111111111111111111111111111"
          reporter: "0x2222222222222222222222222222222222222222"
          cuspd_token: ""
    price_oracle:
      provider: pyth
      pyth:
        hermes_url: "https://hermes.example.com"
        feed_id: "abcd"
    api:
      default_chain_id: 11155111
      port: 9000
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway:
    """Dict-backed ``ChainDataGateway`` counting every call it serves."""

    def __init__(self, chain_id: int = SEPOLIA) -> None:
        self.chain_id = chain_id
        self.lowest_id = 0
        self.positions: dict[int, ProviderPosition] = {}
        self.stabilizer_escrows: dict[int, str] = {}
        self.position_escrows: dict[int, str] = {}
        self.unallocated: dict[str, int] = {}
        self.balances: dict[str, int] = {}
        self.shares: dict[str, int] = {}
        self.factor = 10**18
        self.collateral = 0
        self.liability_shares = 0
        self.fail: Exception | None = None
        self.calls: Counter[str] = Counter()

    def add_provider(
        self,
        position_id: int,
        min_ratio_bps: int,
        next_id: int,
        escrow: str | None = None,
        available: int = 0,
    ) -> None:
        self.positions[position_id] = ProviderPosition(min_ratio_bps, next_id)
        if escrow is not None:
            self.stabilizer_escrows[position_id] = escrow
            self.unallocated[escrow] = available

    def _enter(self, name: str, chain_id: int) -> None:
        self.calls[name] += 1
        if chain_id != self.chain_id:
            raise InvalidChain(chain_id)
        if self.fail is not None:
            raise self.fail

    async def lowest_unallocated_id(self, chain_id: int) -> int:
        self._enter("lowest_unallocated_id", chain_id)
        return self.lowest_id

    async def position(self, chain_id: int, position_id: int) -> ProviderPosition:
        self._enter("position", chain_id)
        return self.positions.get(position_id, ProviderPosition(0, 0))

    async def stabilizer_escrow_address(self, chain_id: int, position_id: int) -> str | None:
        self._enter("stabilizer_escrow_address", chain_id)
        return self.stabilizer_escrows.get(position_id)

    async def unallocated_collateral(self, chain_id: int, escrow_address: str) -> int:
        self._enter("unallocated_collateral", chain_id)
        return self.unallocated[escrow_address]

    async def position_escrow_address(self, chain_id: int, position_id: int) -> str | None:
        self._enter("position_escrow_address", chain_id)
        return self.position_escrows.get(position_id)

    async def collateral_balance(self, chain_id: int, address: str) -> int:
        self._enter("collateral_balance", chain_id)
        return self.balances.get(address, 0)

    async def backed_liability_shares(self, chain_id: int, position_escrow_address: str) -> int:
        self._enter("backed_liability_shares", chain_id)
        return self.shares.get(position_escrow_address, 0)

    async def conversion_factor(self, chain_id: int) -> int:
        self._enter("conversion_factor", chain_id)
        return self.factor

    async def system_collateral(self, chain_id: int) -> int:
        self._enter("system_collateral", chain_id)
        return self.collateral

    async def total_liability_shares(self, chain_id: int) -> int:
        self._enter("total_liability_shares", chain_id)
        return self.liability_shares


class FakeOracle:
    """``PriceOracleClient`` returning a settable attestation."""

    def __init__(self, price: int = ETH_USD_2000, decimals: int = 8, timestamp: int = 1000) -> None:
        self.attestation = PriceAttestation(price=price, decimals=decimals, timestamp=timestamp)
        self.fail = False
        self.calls = 0

    async def fetch_price(self) -> PriceAttestation:
        self.calls += 1
        if self.fail:
            raise PriceUnavailable("oracle down")
        return self.attestation


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture()
def service(gateway: FakeGateway, oracle: FakeOracle, clock: FakeClock) -> AggregationService:
    return AggregationService(
        gateway,
        oracle,
        ResultCache(default_ttl=30.0, clock=clock),
        max_hops=10,
        call_timeout=1.0,
        supported_chains=[SEPOLIA],
        clock=clock,
    )
