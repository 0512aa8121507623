"""
VerificationProbe - Verifies mutation units took effect.

Reads each category's primary indicator back from the host and compares
it against the value the unit writes. Read-only.
"""

import logging
from typing import Iterable, Optional

from ..adapters.base import ConfigValue, HostAdapters
from ..catalog.models import MutationCatalog
from ..protocol.category import Category
from ..protocol.errors import AdapterError
from ..protocol.result import VerificationMismatch, VerificationReport

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


class VerificationProbe:
    """
    Verifies that categories are in their optimized state.

    Supports:
    - config store values (registry)
    - service startup modes
    - active power scheme (via powercfg output)
    """

    def __init__(self, catalog: MutationCatalog, adapters: HostAdapters):
        """
        Initialize probe.

        Args:
            catalog: Catalog supplying each category's indicator
            adapters: Host adapters to read through
        """
        self.catalog = catalog
        self.adapters = adapters

    def check(self, categories: Iterable[Category]) -> VerificationReport:
        """
        Compare live state against expected values.

        Adapter failures and unparsable output count as a mismatch with
        actual value "unknown"; they are never raised.

        Args:
            categories: Categories to check

        Returns:
            VerificationReport
        """
        report = VerificationReport()

        for unit in self.catalog.select(categories):
            indicator = unit.indicator
            expected = indicator.expected_values()

            try:
                actual = indicator.read(self.adapters)
            except AdapterError as e:
                logger.debug("Cannot read indicator for %s: %s", unit.category.value, e)
                actual = None

            matched = any(self.matches(actual, value) for value in expected)
            report.per_category_match[unit.category] = matched
            if not matched:
                report.mismatches.append(VerificationMismatch(
                    category=unit.category,
                    expected=" or ".join(str(v) for v in expected),
                    actual=UNKNOWN if actual is None else _display(actual),
                ))

        return report

    def matches(self, actual: Optional[ConfigValue], expected: ConfigValue) -> bool:
        """
        Compare actual value against expected value.

        Handles:
        - Exact match (strings case-insensitive)
        - Numeric comparison when either side is stored as a string
          ("38" == 38, "0x26" == 38)

        Args:
            actual: The value read from the host (None when unreadable)
            expected: The expected value

        Returns:
            True if values match
        """
        if actual is None:
            return False

        if isinstance(actual, bytes) or isinstance(expected, bytes):
            return actual == expected

        actual_number = self._parse_number(actual)
        expected_number = self._parse_number(expected)
        if actual_number is not None and expected_number is not None:
            return actual_number == expected_number

        return str(actual).strip().lower() == str(expected).strip().lower()

    def _parse_number(self, value: ConfigValue) -> Optional[int]:
        """Parse an int, or a decimal/hex string, to an int."""
        if isinstance(value, int):
            return value

        text = str(value).strip().lower()
        try:
            if text.startswith("0x"):
                return int(text, 16)
            return int(text)
        except ValueError:
            return None


def _display(value: ConfigValue) -> str:
    if isinstance(value, bytes):
        return value.hex()
    return str(value)
