"""Property-based tests for the wire codecs.

Uses Hypothesis for property-based testing to validate universal correctness
properties across all valid inputs.

Properties tested:
- Property 1: Date decoding yields the canonical UTC calendar date
- Property 2: Money digits survive decode and encode exactly
- Property 3: Unrecognized enum values round-trip unchanged
"""

import string
from datetime import date, datetime, timedelta, timezone

from hypothesis import assume, given, settings as hyp_settings, strategies as st

from ledgerlink.models.enums import BankTransactionType, InvoiceStatus
from ledgerlink.models.invoice import Invoice
from ledgerlink.models.wire import WireDate, dumps, loads


# =============================================================================
# Custom Strategies
# =============================================================================

# Epoch milliseconds between 1900 and 2200
epoch_ms_strategy = st.integers(min_value=-2_208_988_800_000, max_value=7_258_118_400_000)

# Numeric timezone offsets, both signs
offset_strategy = st.builds(
    lambda sign, hours, minutes: f"{sign}{hours:02d}{minutes:02d}",
    st.sampled_from(["+", "-"]),
    st.integers(min_value=0, max_value=14),
    st.sampled_from([0, 30, 45]),
)

calendar_date_strategy = st.dates(min_value=date(1900, 1, 1), max_value=date(2200, 12, 31))

# Money literals: optional sign, integer part, up to 4 fraction digits
money_literal_strategy = st.builds(
    lambda negative, whole, fraction: ("-" if negative else "") + str(whole) + (f".{fraction}" if fraction else ""),
    st.booleans(),
    st.integers(min_value=0, max_value=999_999_999_999),
    st.text(alphabet=string.digits, min_size=0, max_size=4),
)

unknown_enum_strategy = st.text(
    alphabet=string.ascii_uppercase + "_", min_size=1, max_size=30
)


# =============================================================================
# Property 1: Date Decoding
# =============================================================================


class TestDateDecodingProperty:
    """Property 1: epoch tokens decode to the UTC calendar date."""

    @given(epoch_ms=epoch_ms_strategy, offset=offset_strategy)
    @hyp_settings(max_examples=200)
    def test_epoch_token_decodes_to_utc_date(self, epoch_ms, offset):
        """Property 1: the offset never changes the decoded date."""
        expected = (datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=epoch_ms)).date()
        token = f"/Date({epoch_ms}{offset})/"

        wire = WireDate.decode(token)

        assert wire.value == expected
        assert wire.encode() == expected.isoformat()

    @given(value=calendar_date_strategy)
    @hyp_settings(max_examples=200)
    def test_iso_date_round_trips(self, value):
        """Property 1: decode is the inverse of encode for calendar dates."""
        encoded = WireDate(value).encode()
        assert WireDate.decode(encoded).value == value
        assert WireDate.decode(encoded).encode() == encoded

    @given(value=calendar_date_strategy)
    @hyp_settings(max_examples=100)
    def test_midnight_epoch_decodes_to_same_date(self, value):
        """Property 1: the epoch of a UTC midnight decodes to that date."""
        midnight = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        epoch_ms = int((midnight - datetime(1970, 1, 1, tzinfo=timezone.utc)).total_seconds()) * 1000
        assert WireDate.decode(f"/Date({epoch_ms}+0000)/").value == value


# =============================================================================
# Property 2: Money Precision
# =============================================================================


class TestMoneyPrecisionProperty:
    """Property 2: money values keep every digit."""

    @given(literal=money_literal_strategy)
    @hyp_settings(max_examples=300)
    def test_money_round_trip_through_model(self, literal):
        """Property 2: decode then encode reproduces the literal exactly."""
        # JSON has no negative zero integer
        assume(literal != "-0")
        body = loads(f'{{"Total": {literal}}}')

        invoice = Invoice.from_wire(body)
        encoded = dumps(invoice.to_wire())

        assert encoded == f'{{"Total":{literal}}}'


# =============================================================================
# Property 3: Enum Forward Compatibility
# =============================================================================


class TestEnumForwardCompatibilityProperty:
    """Property 3: unknown enum values never fail to parse."""

    @given(value=unknown_enum_strategy)
    @hyp_settings(max_examples=200)
    def test_unknown_status_round_trips(self, value):
        """Property 3: any string survives decode and encode unchanged."""
        invoice = Invoice.from_wire({"Status": value})
        assert invoice.status.value == value
        assert invoice.to_wire()["Status"] == value

    @given(value=unknown_enum_strategy)
    @hyp_settings(max_examples=100)
    def test_unknown_flag_matches_membership(self, value):
        """Property 3: is_unknown is set exactly for unlisted values."""
        known = {member.value for member in BankTransactionType}
        assert BankTransactionType(value).is_unknown == (value not in known)
        assert InvoiceStatus(value).value == value
