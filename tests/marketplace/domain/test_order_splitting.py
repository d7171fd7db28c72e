"""Tests for OrderSplitter and OrderNumberGenerator."""

import re
from datetime import UTC, datetime
from itertools import cycle

import pytest
from protean.exceptions import ValidationError

from marketplace.order.numbering import MAX_ATTEMPTS, OrderNumberGenerator, random_suffix
from marketplace.order.splitter import OrderSplitter, ResolvedLine


def _line(seller_id, product_id="p", quantity=1, unit_price=10.0):
    return ResolvedLine(
        product_id=product_id,
        variant_id=f"{product_id}-v",
        seller_id=seller_id,
        category_id=None,
        quantity=quantity,
        unit_price=unit_price,
    )


class TestOrderSplitter:
    def test_one_bucket_per_seller_in_first_seen_order(self):
        lines = [_line("S2", "a"), _line("S1", "b"), _line("S2", "c")]
        buckets = OrderSplitter().split(lines)
        assert [b.seller_id for b in buckets] == ["S2", "S1"]
        assert [line.product_id for line in buckets[0].lines] == ["a", "c"]

    def test_bucket_amounts_add_up_to_cart_total(self):
        lines = [_line("S1", quantity=2, unit_price=100.0), _line("S2", quantity=3, unit_price=33.33)]
        buckets = OrderSplitter().split(lines)
        assert sum(b.amount for b in buckets) == pytest.approx(299.99)

    def test_no_lines_no_buckets(self):
        assert OrderSplitter().split([]) == []

    def test_line_converts_to_order_line(self):
        line = _line("S1", "p1", quantity=2, unit_price=5.5)
        assert line.line_total == 11.0
        assert line.as_order_line() == {
            "product_id": "p1",
            "variant_id": "p1-v",
            "category_id": None,
            "quantity": 2,
            "unit_price": 5.5,
        }


class TestOrderNumberGenerator:
    def test_format(self):
        number = OrderNumberGenerator().next(now=datetime(2026, 10, 18, tzinfo=UTC))
        assert re.fullmatch(r"ORD-20261018-[0-9A-Z]{6}", number)

    def test_random_suffix_alphabet(self):
        assert re.fullmatch(r"[0-9A-Z]{6}", random_suffix())

    def test_numbers_are_distinct(self):
        generator = OrderNumberGenerator()
        numbers = {generator.next() for _ in range(200)}
        assert len(numbers) == 200

    def test_collision_with_existing_order_is_retried(self):
        suffixes = iter(["AAAAAA", "BBBBBB"])
        generator = OrderNumberGenerator(exists=lambda n: n.endswith("AAAAAA"), suffix=lambda: next(suffixes))
        assert generator.next().endswith("BBBBBB")

    def test_number_issued_twice_by_same_generator_is_retried(self):
        suffixes = iter(["AAAAAA", "AAAAAA", "CCCCCC"])
        generator = OrderNumberGenerator(suffix=lambda: next(suffixes))
        first = generator.next()
        second = generator.next()
        assert first != second

    def test_gives_up_after_bounded_attempts(self):
        calls = []

        def always_same():
            calls.append(1)
            return "ZZZZZZ"

        generator = OrderNumberGenerator(exists=lambda n: True, suffix=always_same)
        with pytest.raises(ValidationError) as exc:
            generator.next()
        assert "order_number" in exc.value.messages
        assert len(calls) == MAX_ATTEMPTS

    def test_retry_limit_is_configurable(self):
        generator = OrderNumberGenerator(exists=lambda n: True, suffix=lambda: next(cycle(["X" * 6])), max_attempts=2)
        with pytest.raises(ValidationError):
            generator.next()
