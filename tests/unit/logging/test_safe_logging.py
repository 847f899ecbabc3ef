"""
Tests for safe object serialization.

Tests masking of Sensitive fields and fallback rendering of unknown types.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel

from service_common.core.safe_logging import Sensitive, mask, to_loggable, to_safe_json


class Status(Enum):
    ACTIVE = "active"


class Account(BaseModel):
    owner: str
    password: Annotated[str, Sensitive()]
    iban: Annotated[str, Sensitive(show_last=4)]
    pin: Annotated[Optional[str], Sensitive(mask_char="#")] = None


@dataclass
class Payment:
    reference: str
    card_number: Annotated[str, Sensitive(show_last=4)]
    cvv: str = field(default="", metadata={"sensitive": Sensitive()})


class Opaque:
    def __str__(self) -> str:
        return "opaque-value"


class TestMask:
    """Test the mask function."""

    def test_empty_and_none_unchanged(self) -> None:
        assert mask(None) is None
        assert mask("") == ""

    def test_full_mask_has_fixed_width(self) -> None:
        """Test full masking hides the original length."""
        assert mask("secret") == "********"
        assert mask("a-much-longer-secret-value") == "********"

    def test_show_last(self) -> None:
        assert mask("4111111111111111", show_last=4) == "************1111"

    def test_show_last_longer_than_value(self) -> None:
        assert mask("abc", show_last=4) == "***"

    def test_custom_mask_char(self) -> None:
        assert mask("secret", mask_char="#") == "########"


class TestToSafeJson:
    """Test object rendering with sensitive fields masked."""

    def test_pydantic_model(self) -> None:
        """Test Sensitive annotations on pydantic fields."""
        account = Account(owner="alice", password="hunter2", iban="DE89370400440532013000", pin="1234")

        rendered = json.loads(to_safe_json(account))

        assert rendered["owner"] == "alice"
        assert rendered["password"] == "********"
        assert rendered["iban"].endswith("3000")
        assert "DE89" not in rendered["iban"]
        assert rendered["pin"] == "########"

    def test_none_sensitive_value_stays_none(self) -> None:
        account = Account(owner="bob", password="pw", iban="GB29NWBK60161331926819")

        assert to_loggable(account)["pin"] is None

    def test_dataclass(self) -> None:
        """Test Annotated and field metadata markers on dataclasses."""
        payment = Payment(reference="INV-1", card_number="4111111111111111", cvv="123")

        rendered = to_loggable(payment)

        assert rendered["reference"] == "INV-1"
        assert rendered["card_number"] == "************1111"
        assert rendered["cvv"] == "********"

    def test_nested_structures(self) -> None:
        """Test models nested in lists and dicts are masked."""
        data = {"accounts": [Account(owner="carol", password="pw", iban="FR1420041010050500013M02606")]}

        rendered = to_loggable(data)

        assert rendered["accounts"][0]["password"] == "********"

    def test_special_types(self) -> None:
        """Test datetimes, enums, decimals and unknown types."""
        data = {
            "when": datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            "status": Status.ACTIVE,
            "amount": Decimal("10.50"),
            "other": Opaque(),
        }

        rendered = json.loads(to_safe_json(data))

        assert rendered["when"] == "2025-01-02T03:04:05+00:00"
        assert rendered["status"] == "active"
        assert rendered["amount"] == "10.50"
        assert rendered["other"] == "opaque-value"

    def test_output_is_indented(self) -> None:
        assert "\n  " in to_safe_json({"a": 1})
