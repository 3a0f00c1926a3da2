from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date, datetime

PO_PREFIX = "PO"
SEQUENCE_PADDING = 4
MAX_SEQUENCE = 10**SEQUENCE_PADDING - 1

_PO_PATTERN = re.compile(r"^PO-(\d{8})-(\d{4})$")


class PurchaseOrderSequenceExhausted(ValueError):
    pass


class PurchaseOrderNumberService:
    @staticmethod
    def generate(existing_numbers: Iterable[str], today: date | datetime) -> str:
        """
        Next number in the date-scoped sequence: PO-YYYYMMDD-NNNN.

        Pure: uniqueness holds only if `existing_numbers` is the full set of
        numbers already issued, so callers must serialize issuance.
        """
        if isinstance(today, datetime):
            today = today.date()
        date_part = today.strftime("%Y%m%d")

        max_sequence = 0
        for number in existing_numbers:
            match = _PO_PATTERN.match(number or "")
            if match is None or match.group(1) != date_part:
                continue
            max_sequence = max(max_sequence, int(match.group(2)))

        next_sequence = max_sequence + 1
        if next_sequence > MAX_SEQUENCE:
            raise PurchaseOrderSequenceExhausted(
                f"No purchase order numbers left for {today.isoformat()}"
            )
        return f"{PO_PREFIX}-{date_part}-{str(next_sequence).zfill(SEQUENCE_PADDING)}"

    @staticmethod
    def is_valid(po_number: str) -> bool:
        return bool(_PO_PATTERN.match(po_number or ""))

    @staticmethod
    def extract_date(po_number: str) -> date | None:
        match = _PO_PATTERN.match(po_number or "")
        if match is None:
            return None
        try:
            return datetime.strptime(match.group(1), "%Y%m%d").date()
        except ValueError:
            # Well-formed but not a calendar date, e.g. PO-20240231-0001.
            return None

    @staticmethod
    def extract_sequence(po_number: str) -> int | None:
        match = _PO_PATTERN.match(po_number or "")
        if match is None:
            return None
        return int(match.group(2))
