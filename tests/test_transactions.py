from datetime import date
from decimal import Decimal

from options_ledger.models import InstrumentKey, OptionKind, Side
from options_ledger.processing.transactions import (
    aggregate,
    check_consistency,
    format_strike,
    lots_to_frame,
    match,
    partition,
    trades_to_frame,
)
from tests.conftest import PLTR_PUT, make_leg

PLTR_CALL = InstrumentKey("PLTR", OptionKind.CALL, Decimal("150"), date(2026, 2, 20))


def run(opening, closing):
    lots = aggregate(opening)
    trades = match(closing, lots)
    return lots, trades


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

def test_full_close():
    lots, trades = run(
        [make_leg("STO", qty=3, price="2.00")],
        [make_leg("BTC", qty=3, price="0.50")],
    )
    assert lots[0].remaining_quantity == 0
    assert trades[0].realized_pnl == Decimal("450")
    assert trades[0].matched_quantity == 3
    assert trades[0].unmatched_quantity == 0
    open_positions, closed = partition(lots, trades)
    assert open_positions == []
    assert closed == trades


def test_partial_close():
    lots, trades = run(
        [make_leg("STO", qty=5, price="2.00")],
        [make_leg("BTC", qty=2, price="1.00")],
    )
    assert trades[0].matched_quantity == 2
    assert trades[0].realized_pnl == Decimal("200")
    open_positions, _ = partition(lots, trades)
    assert len(open_positions) == 1
    assert open_positions[0].remaining_quantity == 3
    assert open_positions[0].total_quantity == 5


def test_aggregation_of_identical_rows():
    lots = aggregate([
        make_leg("STO", qty=1, row_id="r1"),
        make_leg("STO", qty=2, row_id="r2"),
    ])
    assert len(lots) == 1
    assert lots[0].total_quantity == 3
    assert lots[0].remaining_quantity == 3
    assert lots[0].contributing_row_ids == ["r1", "r2"]


def test_close_without_any_lot():
    lots, trades = run([], [make_leg("BTC", qty=4, price="1.00")])
    trade = trades[0]
    assert trade.matched_quantity == 0
    assert trade.unmatched_quantity == 4
    assert trade.realized_pnl == 0
    assert trade.paired_lots == []
    # no lot was found, so the closed side is the inverse of the closing row
    assert trade.side is Side.SELL


def test_assignment_at_zero_price():
    _, trades = run(
        [make_leg("STO", qty=1, price="2.00")],
        [make_leg("OASGN", qty=1, price="0.00")],
    )
    assert trades[0].realized_pnl == Decimal("200")
    assert trades[0].price_known is True


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def test_aggregation_keeps_distinct_price_and_date_apart():
    lots = aggregate([
        make_leg("STO", qty=1, price="2.00"),
        make_leg("STO", qty=1, price="2.10"),
        make_leg("STO", qty=1, price="2.00", on=date(2026, 1, 16)),
        make_leg("STO", qty=1, price="2.00", side=Side.BUY),
        make_leg("STO", qty=1, price="2.00"),
    ])
    assert [lot.total_quantity for lot in lots] == [2, 1, 1, 1]
    assert [lot.lot_id for lot in lots] == ["LOT-0001", "LOT-0002", "LOT-0003", "LOT-0004"]


def test_aggregation_treats_equal_decimals_as_same_price():
    lots = aggregate([make_leg("STO", price="2"), make_leg("STO", price="2.00")])
    assert len(lots) == 1


def test_entry_price_derived_from_amount_when_missing():
    lots = aggregate([make_leg("STO", qty=2, price=None, amount="399.50")])
    assert lots[0].entry_price == Decimal("1.9975")


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def test_close_spans_lots_in_discovery_order():
    lots, trades = run(
        [
            make_leg("STO", qty=2, price="3.00", on=date(2026, 1, 20)),
            make_leg("STO", qty=2, price="2.00", on=date(2026, 1, 10)),
        ],
        [make_leg("BTC", qty=3, price="1.00")],
    )
    trade = trades[0]
    assert trade.paired_lots == [("LOT-0001", 2), ("LOT-0002", 1)]
    assert trade.paired_lot_ids == ["LOT-0001", "LOT-0002"]
    assert trade.realized_pnl == Decimal("400") + Decimal("100")
    assert [lot.remaining_quantity for lot in lots] == [0, 1]


def test_excess_close_quantity_is_reported():
    lots, trades = run(
        [make_leg("STO", qty=2)],
        [make_leg("BTC", qty=5, price="1.00")],
    )
    assert trades[0].matched_quantity == 2
    assert trades[0].unmatched_quantity == 3
    assert not trades[0].fully_matched
    assert lots[0].remaining_quantity == 0


def test_matching_ignores_other_instruments():
    lots, trades = run(
        [make_leg("STO", qty=2, instrument=PLTR_CALL)],
        [make_leg("BTC", qty=2, price="1.00", instrument=PLTR_PUT)],
    )
    assert trades[0].unmatched_quantity == 2
    assert lots[0].remaining_quantity == 2


def test_long_lot_pnl_uses_same_formula():
    lots, trades = run(
        [make_leg("", qty=1, price="1.00", side=Side.SELL)],
        [make_leg("", qty=1, price="3.00", side=Side.BUY)],
    )
    # (entry - close) x 100: the lot holder is the seller here
    assert trades[0].realized_pnl == Decimal("-200")
    assert trades[0].side is Side.SELL


def test_later_closes_see_reduced_lots():
    lots, trades = run(
        [make_leg("STO", qty=3)],
        [make_leg("BTC", qty=2, price="1.00"), make_leg("BTC", qty=2, price="1.00")],
    )
    assert [t.matched_quantity for t in trades] == [2, 1]
    assert [t.unmatched_quantity for t in trades] == [0, 1]
    assert lots[0].remaining_quantity == 0


def test_unknown_close_price_is_priced_at_zero_and_flagged():
    _, trades = run(
        [make_leg("STO", qty=1, price="2.00")],
        [make_leg("BTC", qty=1, price=None)],
    )
    assert trades[0].realized_pnl == Decimal("200")
    assert trades[0].close_price is None
    assert trades[0].price_known is False


def test_zero_quantity_close_passes_through():
    lots, trades = run([make_leg("STO", qty=2)], [make_leg("BTC", qty=0)])
    assert trades[0].matched_quantity == 0
    assert trades[0].unmatched_quantity == 0
    assert trades[0].realized_pnl == 0
    assert lots[0].remaining_quantity == 2


def test_negative_opening_leg_does_not_shrink_its_group():
    lots = aggregate([
        make_leg("STO", qty=3, row_id="a"),
        make_leg("STO", qty=-2, row_id="b"),
    ])
    assert len(lots) == 1
    assert lots[0].total_quantity == 3
    assert lots[0].remaining_quantity == 3
    assert lots[0].contributing_row_ids == ["a"]


def test_zero_or_negative_opening_leg_creates_no_lot():
    assert aggregate([make_leg("STO", qty=0)]) == []
    assert aggregate([make_leg("STO", qty=-1)]) == []
    lots = aggregate([make_leg("STO", qty=0), make_leg("STO", qty=2, price="2.50")])
    assert [lot.lot_id for lot in lots] == ["LOT-0001"]
    assert lots[0].total_quantity == 2


def test_negative_closing_leg_keeps_quantity_balanced():
    lots, trades = run([make_leg("STO", qty=3)], [make_leg("BTC", qty=-2, price="1.00")])
    trade = trades[0]
    assert trade.quantity == 0
    assert trade.matched_quantity + trade.unmatched_quantity == trade.quantity
    assert trade.realized_pnl == 0
    assert lots[0].remaining_quantity == 3


def test_trade_id_is_stable_across_runs():
    close = make_leg("BTC", qty=1, row_id="activity.csv:7")
    _, first = run([make_leg("STO")], [close])
    _, second = run([make_leg("STO")], [close])
    assert first[0].trade_id == second[0].trade_id


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------

def _batch():
    opening = [
        make_leg("STO", qty=3, price="2.00", row_id="o1"),
        make_leg("STO", qty=2, price="2.50", row_id="o2"),
        make_leg("STO", qty=4, price="1.00", instrument=PLTR_CALL, row_id="o3"),
        make_leg("STO", qty=1, price="2.00", row_id="o4"),
    ]
    closing = [
        make_leg("BTC", qty=2, price="0.50", row_id="c1"),
        make_leg("BTC", qty=5, price="0.25", row_id="c2"),
        make_leg("OASGN", qty=1, price="0", instrument=PLTR_CALL, row_id="c3"),
        make_leg("BTC", qty=1, price="0.10", row_id="c4"),
    ]
    return opening, closing


def test_quantity_invariants_hold():
    opening, closing = _batch()
    lots, trades = run(opening, closing)
    for lot in lots:
        assert 0 <= lot.remaining_quantity <= lot.total_quantity
    for trade in trades:
        assert trade.matched_quantity + trade.unmatched_quantity == trade.quantity
        assert trade.matched_quantity == sum(q for _, q in trade.paired_lots)


def test_conservation_per_instrument():
    opening, closing = _batch()
    lots, trades = run(opening, closing)
    for inst in (PLTR_PUT, PLTR_CALL):
        consumed = sum(lot.consumed_quantity for lot in lots if lot.instrument == inst)
        matched = sum(t.matched_quantity for t in trades if t.instrument == inst)
        assert consumed == matched
    assert check_consistency(lots, trades).empty


def test_pipeline_is_deterministic():
    opening, closing = _batch()
    lots_a, trades_a = run(opening, closing)
    lots_b, trades_b = run(opening, closing)
    assert lots_a == lots_b
    assert trades_a == trades_b
    assert lots_to_frame(lots_a).equals(lots_to_frame(lots_b))
    assert trades_to_frame(trades_a).equals(trades_to_frame(trades_b))


def test_check_consistency_flags_tampered_lot():
    opening, closing = _batch()
    lots, trades = run(opening, closing)
    lots[0].remaining_quantity += 1
    problems = check_consistency(lots, trades)
    assert len(problems) == 1
    assert problems.loc[0, 'INSTRUMENT'] == str(PLTR_PUT)


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

def test_lots_frame_reports_remaining_quantity():
    lots, trades = run([make_leg("STO", qty=5)], [make_leg("BTC", qty=2, price="1.00")])
    df = lots_to_frame(partition(lots, trades)[0])
    assert list(df['QTY']) == [3]
    assert list(df['TOTAL QTY']) == [5]
    assert df.loc[0, 'POSITION'] == 'Short'
    assert df.loc[0, 'STRIKE PRICE'] == 150
    assert df.loc[0, 'DTE AT OPEN'] == 36


def test_trades_frame_columns():
    _, trades = run([make_leg("STO", qty=3)], [make_leg("BTC", qty=3, price="0.50")])
    df = trades_to_frame(trades)
    assert df.loc[0, 'REALIZED PNL'] == 450.0
    assert df.loc[0, 'PAIRED LOTS'] == 'LOT-0001x3'
    assert trades_to_frame([]).empty


def test_format_strike():
    assert format_strike(Decimal("150")) == 150
    assert format_strike(Decimal("157.50")) == 157.5
    assert format_strike(None) is None
