"""
Tests for the liquidation bot loop.
"""

import threading
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from lendbot.liquidation.bot import LiquidationBot
from lendbot.liquidation.models import LiquidationResult


@pytest.fixture()
def scanner():
    return MagicMock()


@pytest.fixture()
def executor():
    executor = MagicMock()
    executor.execute.side_effect = lambda opp: LiquidationResult.ok("sig", opp.estimated_profit_usd)
    return executor


@pytest.fixture()
def notifier():
    return MagicMock()


@pytest.fixture()
def bot(scanner, executor, notifier):
    return LiquidationBot(scanner, executor, notifier, min_profit_usd=10, poll_interval_ms=0, wallet_id="wallet")


def test_opportunity_below_threshold_is_ignored(bot, executor, notifier, opportunity):
    result = bot.process_opportunity(replace(opportunity, estimated_profit_usd=9.99))

    assert result is None
    executor.execute.assert_not_called()
    notifier.opportunity_found.assert_not_called()
    assert bot.get_stats().total_attempts == 0


def test_opportunity_at_threshold_is_attempted(bot, executor, opportunity):
    bot.process_opportunity(replace(opportunity, estimated_profit_usd=10))

    executor.execute.assert_called_once()


def test_successful_liquidation_updates_stats(bot, notifier, opportunity):
    result = bot.process_opportunity(opportunity)

    stats = bot.get_stats()
    assert result.success
    assert stats.total_attempts == 1
    assert stats.successful_liquidations == 1
    assert stats.failed_liquidations == 0
    assert stats.total_profit_usd == pytest.approx(30.0)
    assert stats.last_liquidation_time is not None
    notifier.opportunity_found.assert_called_once_with(opportunity)
    notifier.liquidation_succeeded.assert_called_once_with(result, opportunity)


def test_failed_liquidation_updates_stats(bot, executor, notifier, opportunity):
    failure = LiquidationResult.failed("Vault not found")
    executor.execute.side_effect = None
    executor.execute.return_value = failure

    bot.process_opportunity(opportunity)

    stats = bot.get_stats()
    assert stats.total_attempts == 1
    assert stats.failed_liquidations == 1
    assert stats.total_profit_usd == 0
    assert stats.last_liquidation_time is None
    notifier.liquidation_failed.assert_called_once_with(failure, opportunity)


def test_stats_counters_stay_consistent(bot, executor, opportunity):
    outcomes = [LiquidationResult.ok("a", 30.0), LiquidationResult.failed("x"), LiquidationResult.ok("b", 12.5)]
    executor.execute.side_effect = outcomes

    for _ in outcomes:
        bot.process_opportunity(opportunity)

    stats = bot.get_stats()
    assert stats.total_attempts == stats.successful_liquidations + stats.failed_liquidations == 3
    assert stats.total_profit_usd == pytest.approx(42.5)


def test_run_cycle_processes_opportunities_in_order(bot, scanner, executor, opportunity):
    first = replace(opportunity, obligation_id="first")
    skipped = replace(opportunity, obligation_id="skipped", estimated_profit_usd=1)
    second = replace(opportunity, obligation_id="second")
    scanner.scan.return_value = [first, skipped, second]

    results = bot.run_cycle()

    assert len(results) == 2
    assert [c.args[0].obligation_id for c in executor.execute.call_args_list] == ["first", "second"]


def test_cycle_errors_do_not_stop_the_loop(bot, scanner, notifier):
    scanner.scan.side_effect = RuntimeError("scan exploded")

    stats = bot.run(max_cycles=2)

    assert scanner.scan.call_count == 2
    assert bot.cycles_completed == 2
    assert stats.total_attempts == 0
    notifier.bot_started.assert_called_once_with("wallet", 10)
    notifier.bot_stopped.assert_called_once()


def test_notifier_errors_are_contained(bot, notifier, opportunity):
    notifier.opportunity_found.side_effect = RuntimeError("webhook down")
    notifier.liquidation_succeeded.side_effect = RuntimeError("webhook down")

    result = bot.process_opportunity(opportunity)

    assert result.success
    assert bot.get_stats().successful_liquidations == 1


def test_stop_during_cycle_exits_at_boundary(bot, scanner, notifier, opportunity):
    def scan_then_stop():
        bot.stop()
        return [opportunity]

    scanner.scan.side_effect = scan_then_stop

    stats = bot.run()

    assert bot.cycles_completed == 1
    assert not bot.running
    assert stats.successful_liquidations == 1
    notifier.bot_stopped.assert_called_once_with(stats)


def test_get_stats_returns_copy(bot, opportunity):
    snapshot = bot.get_stats()
    bot.process_opportunity(opportunity)

    assert snapshot.total_attempts == 0


def test_stats_stay_consistent_for_concurrent_readers(bot, executor, opportunity):
    executor.execute.side_effect = None
    executor.execute.return_value = LiquidationResult.failed("simulation failed")
    inconsistent = []
    done = threading.Event()

    def read_stats():
        while not done.is_set():
            stats = bot.get_stats()
            if stats.total_attempts != stats.successful_liquidations + stats.failed_liquidations:
                inconsistent.append(stats)

    reader = threading.Thread(target=read_stats)
    reader.start()
    try:
        for _ in range(20_000):
            bot.record_result(executor.execute(opportunity))
    finally:
        done.set()
        reader.join()

    assert inconsistent == []
    assert bot.get_stats().failed_liquidations == 20_000


def test_zero_max_cycles_runs_nothing(bot, scanner, notifier):
    stats = bot.run(max_cycles=0)

    scanner.scan.assert_not_called()
    assert bot.cycles_completed == 0
    notifier.bot_stopped.assert_called_once_with(stats)
