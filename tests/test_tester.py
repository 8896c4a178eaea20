"""End-to-end runs of the pre-test against fake exchange services."""

import pytest

from exchange_tester.errors import CheckFailed, ConvergenceTimeout, ErrorWithStatus, RetiredError
from exchange_tester.models import LogTag
from exchange_tester.scenario import BUYER, SELLER
from exchange_tester.tester import PostTester, expect_status

from tests.conftest import FIXED_NOW


@pytest.mark.asyncio
async def test_conforming_exchange_passes(harness):
    exchange = harness.exchange()
    await harness.pretester(exchange).run()

    buyer_bank_id = f"{BUYER.prefix}{FIXED_NOW}@isucon.net"
    seller_bank_id = f"{SELLER.prefix}{FIXED_NOW}@isucon.net"
    # 550 credited, then 3@99 and 2@100 bought
    assert harness.bank.credits[buyer_bank_id] == 53
    # 3@100 + 1@99 + 1@99 sold, reconciled against the seller's own account
    assert harness.bank.credits[seller_bank_id] == 498


@pytest.mark.asyncio
async def test_run_closes_every_client(harness):
    exchange = harness.exchange()
    await harness.pretester(exchange).run()

    # buyer, seller and the conflicting signup
    assert len(harness.opened) == 3
    assert all(client.http_client.is_closed for client in harness.opened)


@pytest.mark.asyncio
async def test_clients_closed_after_failure(harness):
    exchange = harness.exchange(leak_guest_trades=True)
    with pytest.raises(CheckFailed):
        await harness.pretester(exchange).run()
    assert all(client.http_client.is_closed for client in harness.opened)


@pytest.mark.asyncio
async def test_guest_info_must_not_report_trades(harness):
    exchange = harness.exchange(leak_guest_trades=True)
    with pytest.raises(CheckFailed, match="GET /info"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_signup_without_bank_verification_is_rejected(harness):
    exchange = harness.exchange(check_bank_on_signup=False)
    with pytest.raises(CheckFailed, match="unknown to the bank"):
        await harness.pretester(exchange).run()
    # the bank accounts are only opened after the negative checks
    assert harness.bank.credits == {}


@pytest.mark.asyncio
async def test_duplicate_signup_is_rejected(harness):
    exchange = harness.exchange(allow_duplicate_signup=True)
    with pytest.raises(CheckFailed, match="already registered"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_unfunded_buy_order_is_rejected(harness):
    exchange = harness.exchange(skip_credit_check=True)
    with pytest.raises(CheckFailed, match=r"bank balance cannot cover \[order_id:\d+\]"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_listing_must_be_in_creation_order(harness):
    exchange = harness.exchange(reverse_listing=True)
    with pytest.raises(CheckFailed, match="creation time ascending"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_trades_that_never_settle_time_out(harness):
    exchange = harness.exchange(never_settle=True)
    with pytest.raises(ConvergenceTimeout, match="did not settle"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_late_settlement_is_awaited(harness):
    exchange = harness.exchange(settle_after_polls=3)
    await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_ledger_mismatch_fails(harness):
    exchange = harness.exchange(ledger_skew=1)
    with pytest.raises(CheckFailed, match="bank balance does not match"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_missing_audit_logs_time_out(harness):
    exchange = harness.exchange(drop_log_tags={LogTag.SIGNIN})
    with pytest.raises(ConvergenceTimeout, match="audit logs"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_missing_trade_logs_time_out(harness):
    exchange = harness.exchange(drop_log_tags={LogTag.SELL_TRADE})
    with pytest.raises(ConvergenceTimeout, match="sell track"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_wrong_signup_log_fails_without_waiting(harness):
    exchange = harness.exchange(signup_log_name="someone else")
    with pytest.raises(CheckFailed, match="log.signup name"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_post_tester_is_a_no_op(harness):
    tester = PostTester(harness.config, isulog=None, isubank=None)
    assert await tester.run() is None


@pytest.mark.asyncio
async def test_extra_trade_beyond_plan_is_rejected(harness):
    # the additional fill leaves the bank untouched, so only the count gives it away
    exchange = harness.exchange(extra_fill=True)
    with pytest.raises(CheckFailed, match="traded_orders count"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_trade_on_wrong_position_is_rejected(harness):
    exchange = harness.exchange(trade_index_shift=-1)
    with pytest.raises(CheckFailed, match=r"should not settle \[index:1, order_id:\d+\]"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_unexpected_status_for_unknown_signin_fails(harness):
    exchange = harness.exchange(unknown_signin_status=400)
    with pytest.raises(CheckFailed, match=r"POST /signin returned an unexpected status code \[got:400, want:404\]"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_signin_for_unknown_account_must_fail(harness):
    exchange = harness.exchange(unknown_signin_status=200)
    with pytest.raises(CheckFailed, match="account that does not exist"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_rejected_buy_must_not_create_an_order(harness):
    exchange = harness.exchange(create_on_rejected_buy=True)
    with pytest.raises(CheckFailed, match=r"count after rejected order \[got:1, want:0\]"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_listed_order_fields_must_match(harness):
    exchange = harness.exchange(listing_price_offset=1)
    with pytest.raises(CheckFailed, match=r"GET /orders price \[got:2001, want:2000\]"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_cancelled_order_must_leave_listing(harness):
    exchange = harness.exchange(ignore_delete=True)
    with pytest.raises(CheckFailed, match=r"count after delete \[got:1, want:0\]"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_wrong_buy_error_payload_fails(harness):
    exchange = harness.exchange(buy_error_payload=(1, 1999))
    with pytest.raises(CheckFailed, match="log.buy.error"):
        await harness.pretester(exchange).run()


@pytest.mark.asyncio
async def test_expect_status_keeps_collaborator_error_type():
    async def slow_signin():
        raise RetiredError("POST /signin took 9.00s (retire timeout 5.00s)")

    with pytest.raises(RetiredError, match="retire timeout"):
        await expect_status(slow_signin(), 404, "POST /signin", "unexpected success")


@pytest.mark.asyncio
async def test_expect_status_accepts_expected_status():
    async def not_found():
        raise ErrorWithStatus("POST", "/signin", 404, "not found")

    assert await expect_status(not_found(), 404, "POST /signin", "unexpected success") is None
