"""
Unit Golden Tests: Order Reference Generator
"""
import pytest

from microservices.purchase_service.order_reference import OrderReferenceGenerator
from microservices.purchase_service.protocols import OrderReferenceError


class TestOrderReferenceGenerator:

    def test_format(self):
        generator = OrderReferenceGenerator(clock=lambda: 1700000000123456789)

        assert generator.generate("user_42") == "sub_1700000000123456789_user_42"

    def test_ten_thousand_sequential_references_are_distinct(self):
        generator = OrderReferenceGenerator()

        references = [generator.generate("user_1") for _ in range(10000)]

        assert len(set(references)) == 10000

    def test_frozen_clock_still_yields_increasing_timestamps(self):
        generator = OrderReferenceGenerator(clock=lambda: 1000)

        first = generator.generate("user_1")
        second = generator.generate("user_1")

        assert first == "sub_1000_user_1"
        assert second == "sub_1001_user_1"

    def test_clock_going_backwards(self):
        ticks = iter([5000, 4000])
        generator = OrderReferenceGenerator(clock=lambda: next(ticks))

        generator.generate("user_1")

        assert generator.generate("user_1") == "sub_5001_user_1"

    def test_clock_failure(self):
        def broken_clock():
            raise OSError("no clock")

        generator = OrderReferenceGenerator(clock=broken_clock)

        with pytest.raises(OrderReferenceError):
            generator.generate("user_1")

    @pytest.mark.parametrize("payer_id", ["", "   ", None])
    def test_payer_required(self, payer_id):
        with pytest.raises(OrderReferenceError):
            OrderReferenceGenerator().generate(payer_id)

    def test_custom_prefix(self):
        generator = OrderReferenceGenerator(prefix="topup", clock=lambda: 7)
        assert generator.generate("user_1") == "topup_7_user_1"
