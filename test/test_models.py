"""
Tests for payload decoding and derived vault values.
"""

from datetime import datetime, timezone

import pytest
from solders.pubkey import Pubkey

from lendbot.liquidation.exceptions import MalformedPayloadError
from lendbot.liquidation.models import LiquidationCandidate, LiquidationResult, LiquidationStats, VaultSnapshot


def vault_payload(**overrides):
    payload = {
        "id": 7,
        "address": str(Pubkey.new_unique()),
        "borrowToken": {"address": str(Pubkey.new_unique()), "decimals": 6, "price": "1.0", "symbol": "USDC"},
        "supplyToken": {"address": str(Pubkey.new_unique()), "decimals": 9, "price": "150.25", "symbol": "SOL"},
        "totalBorrow": "2500000000",
        "totalSupply": "100000000000",
    }
    payload.update(overrides)
    return payload


def test_vault_from_dict_decodes_amounts():
    vault = VaultSnapshot.from_dict(vault_payload())

    assert vault.id == 7
    assert vault.borrow_token.symbol == "USDC"
    assert vault.supply_token.price == 150.25
    assert vault.borrow_amount == 2500
    assert vault.supply_amount == 100


def test_vault_utilization():
    vault = VaultSnapshot.from_dict(
        vault_payload(
            supplyToken={"address": str(Pubkey.new_unique()), "decimals": 6, "price": 1},
            totalBorrow=25_000_000,
            totalSupply=100_000_000,
        )
    )
    assert vault.utilization == pytest.approx(25.0)


def test_vault_utilization_is_zero_without_supply():
    vault = VaultSnapshot.from_dict(vault_payload(totalSupply="0"))
    assert vault.utilization == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"totalBorrow": None},
        {"totalSupply": "lots"},
        {"totalBorrow": "-5"},
        {"totalSupply": 1.5},
        {"address": "not-a-pubkey"},
        {"borrowToken": {"address": str(Pubkey.new_unique()), "decimals": 6, "price": "NaN"}},
        {"supplyToken": {"address": str(Pubkey.new_unique()), "decimals": 6}},
        {"supplyToken": "SOL"},
    ],
)
def test_vault_from_dict_rejects_malformed_records(overrides):
    with pytest.raises(MalformedPayloadError):
        VaultSnapshot.from_dict(vault_payload(**overrides))


def test_candidate_from_dict():
    candidate = LiquidationCandidate.from_dict({"amtIn": "50000000", "amtOut": 80000000, "positionId": 12})

    assert candidate.amt_in == 50_000_000
    assert candidate.amt_out == 80_000_000
    assert candidate.position_id == "12"


def test_candidate_from_dict_rejects_missing_amount():
    with pytest.raises(MalformedPayloadError):
        LiquidationCandidate.from_dict({"amtIn": "1"})


def test_failed_result_always_has_message():
    assert LiquidationResult.failed("").error
    assert not LiquidationResult.failed("boom").success


def test_stats_snapshot_is_independent():
    stats = LiquidationStats(total_attempts=1, successful_liquidations=1, total_profit_usd=30.0)
    snapshot = stats.snapshot()
    stats.total_attempts += 1

    assert snapshot.total_attempts == 1


def test_stats_to_dict_serializes_time():
    when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    data = LiquidationStats(last_liquidation_time=when).to_dict()

    assert data["last_liquidation_time"] == when.isoformat()
    assert data["total_attempts"] == 0
