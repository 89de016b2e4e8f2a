"""Money, calendar-day and input parsing helpers."""

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from errors import ValidationError
from ledger import (MAX_AMOUNT, day_window, like_pattern, local_date, money, month_bounds, nights_between,
                    pagination_meta, parse_amount, parse_date, parse_pagination, parse_time, to_decimal)


class TestMoney:
    def test_to_decimal_is_lenient(self):
        assert to_decimal(None) == Decimal('0.00')
        assert to_decimal('') == Decimal('0.00')
        assert to_decimal('abc') == Decimal('0.00')
        assert to_decimal(12) == Decimal('12.00')
        assert to_decimal(0.1) == Decimal('0.10')
        assert to_decimal('19.999') == Decimal('20.00')

    def test_money_is_two_decimal_string(self):
        assert money(100) == '100.00'
        assert money(Decimal('2.5')) == '2.50'
        assert money(None) == '0.00'

    def test_parse_amount_accepts_numbers_and_strings(self):
        assert parse_amount('500') == Decimal('500.00')
        assert parse_amount(12.5) == Decimal('12.50')

    @pytest.mark.parametrize('value', [None, '', 'ten', True, 'NaN', 'Infinity', '1e30', '100000000000', '99999999.996'])
    def test_parse_amount_rejects_garbage(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value)

    def test_parse_amount_rejects_negative(self):
        with pytest.raises(ValidationError, match='must not be negative'):
            parse_amount('-1', 'rent')

    def test_parse_amount_upper_bound(self):
        assert parse_amount('99999999.99') == MAX_AMOUNT
        with pytest.raises(ValidationError, match='rent must not exceed 99999999.99'):
            parse_amount('100000000', 'rent')

    def test_like_pattern_escapes_wildcards(self):
        assert like_pattern('50%_off') == '%50\\%\\_off%'
        assert like_pattern('Dal') == '%Dal%'


class TestCalendar:
    def test_nights_are_inclusive(self):
        assert nights_between(date(2024, 1, 1), date(2024, 1, 1)) == 1
        assert nights_between(date(2024, 1, 1), date(2024, 1, 3)) == 3

    def test_nights_never_negative(self):
        assert nights_between(date(2024, 1, 3), date(2024, 1, 1)) == 0
        assert nights_between(None, date(2024, 1, 1)) == 0

    def test_day_window_is_local_midnight_in_utc(self, ctx):
        start, end = day_window(date(2024, 1, 1))
        assert start == datetime(2023, 12, 31, 18, 30)
        assert end == datetime(2024, 1, 1, 18, 30)

    def test_multi_day_window(self, ctx):
        start, end = day_window(date(2024, 1, 1), date(2024, 1, 3))
        assert start == datetime(2023, 12, 31, 18, 30)
        assert end == datetime(2024, 1, 3, 18, 30)

    def test_local_date_crosses_midnight_before_utc(self, ctx):
        assert local_date(datetime(2024, 1, 1, 19, 0)) == date(2024, 1, 2)
        assert local_date(datetime(2024, 1, 1, 18, 0)) == date(2024, 1, 1)

    def test_month_bounds(self):
        assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(date(2023, 12, 31)) == (date(2023, 12, 1), date(2023, 12, 31))


class TestParsing:
    def test_parse_date(self):
        assert parse_date('2024-01-05') == date(2024, 1, 5)
        assert parse_date('2024-01-05T10:00:00Z') == date(2024, 1, 5)
        assert parse_date(None, required=False) is None

    def test_parse_date_rejects_bad_format(self):
        with pytest.raises(ValidationError, match='YYYY-MM-DD'):
            parse_date('05/01/2024', 'checkinDate')

    def test_parse_time(self):
        assert parse_time('09:30') == time(9, 30)
        assert parse_time('09:30:15') == time(9, 30, 15)
        with pytest.raises(ValidationError):
            parse_time('half past nine')

    def test_pagination_defaults_and_limits(self):
        assert parse_pagination(None, None) == (1, 10)
        assert parse_pagination('2', '25') == (2, 25)
        with pytest.raises(ValidationError):
            parse_pagination('0', '10')
        with pytest.raises(ValidationError):
            parse_pagination('1', '101')

    def test_pagination_meta(self):
        meta = pagination_meta(2, 10, 25)
        assert meta['totalPages'] == 3
        assert meta['hasNextPage'] is True
        assert meta['hasPrevPage'] is True
        assert pagination_meta(1, 10, 0)['totalPages'] == 0
