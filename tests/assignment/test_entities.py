"""Tests for assignment domain entities."""

import re
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from src.phonefleet.assignment.domain.entities import (
    Assignment,
    AssignmentStatus,
    Device,
    DeviceStatus,
    ReturnStatus,
    ShippingStatus,
    generate_voucher_id,
)


class TestDevice:
    """Tests for Device."""

    @pytest.mark.parametrize(
        "status, terminal",
        [
            (DeviceStatus.NEW, False),
            (DeviceStatus.ASSIGNED, False),
            (DeviceStatus.LOST, False),
            (DeviceStatus.DISPOSED, True),
            (DeviceStatus.DONATED, True),
            (DeviceStatus.SCRAPPED, True),
        ],
    )
    def test_terminal_statuses(self, status, terminal):
        assert status.is_terminal is terminal

    def test_is_usable(self):
        device = Device(id=uuid4(), imei="356")
        assert device.is_usable is True

        device.status = DeviceStatus.SCRAPPED
        assert device.is_usable is False

        device = Device(id=uuid4(), imei="357", is_deleted=True)
        assert device.is_usable is False


class TestAssignment:
    """Tests for Assignment close readiness."""

    def make(self, **fields) -> Assignment:
        return Assignment(id=uuid4(), device_id=uuid4(), assignee_name="Ana", **fields)

    def test_plain_assignment_is_ready(self):
        assignment = self.make()

        assert assignment.has_voucher is False
        assert assignment.missing_for_close() == []
        assert assignment.ready_to_close is True

    def test_voucher_requires_delivery(self):
        assignment = self.make(
            shipping_voucher_id="ENV-20240101-ABCDE",
            shipping_status=ShippingStatus.SHIPPED,
        )

        assert assignment.missing_for_close() == ["delivery"]

        assignment.shipping_status = ShippingStatus.DELIVERED
        assert assignment.ready_to_close is True

    def test_expected_return_requires_receipt(self):
        assignment = self.make(
            shipping_voucher_id="ENV-20240101-ABCDE",
            shipping_status=ShippingStatus.PENDING,
            expects_return=True,
        )

        assert assignment.missing_for_close() == ["delivery", "return"]

        assignment.shipping_status = ShippingStatus.DELIVERED
        assignment.return_status = ReturnStatus.RECEIVED
        assert assignment.missing_for_close() == []

    def test_inactive_is_never_ready(self):
        assignment = self.make(status=AssignmentStatus.CANCELLED)

        assert assignment.is_active is False
        assert assignment.ready_to_close is False


class TestVoucherId:
    def test_format(self):
        voucher = generate_voucher_id(now=datetime(2024, 3, 5, tzinfo=timezone.utc))

        assert re.fullmatch(r"ENV-20240305-[0-9A-Z]{5}", voucher)

    def test_prefix(self):
        assert generate_voucher_id("SHP").startswith("SHP-")

    def test_suffix_varies(self):
        vouchers = {generate_voucher_id() for _ in range(50)}

        assert len(vouchers) > 1
