"""
Scan Result Validation

DESIGN DECISION: Scanner output crosses a trust boundary here. Each field
is parsed on its own and falls back independently:

    amount        missing / unparseable / <= 0  -> None   (error)
    date          missing / unparseable         -> now    (warning)
    date          beyond future tolerance       -> kept   (warning)
    category      no case-insensitive match     -> Other  (info)
    payment mode  no case-insensitive match     -> Other  (info)
    title         no vendor / title             -> fallback title (info)

IMPORTANT: Fallbacks produce a form the user can finish, never a saved
expense. Every fallback is reported as a ValidationIssue for review.
"""

import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

import structlog

from verdant.config import get_settings
from verdant.config.settings import ScannerSettings
from verdant.models.expense import FALLBACK_CATEGORY, PaymentMode, round_amount, to_local_naive
from verdant.models.scan import ExpenseDraft, ScannedLineItem, ScannedReceipt, ValidationIssue


logger = structlog.get_logger(__name__)


DATE_FORMATS = ["%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d", "%d %b %Y", "%d %B %Y"]

_NON_NUMERIC = re.compile(r"[^\d.,\-]")

# "12,50" or "1.234,56": a comma followed by one or two trailing digits
_DECIMAL_COMMA = re.compile(r",\d{1,2}$")


def _uses_decimal_comma(value: Any) -> bool:
    return isinstance(value, str) and bool(_DECIMAL_COMMA.search(_NON_NUMERIC.sub("", value)))


def _safe_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse an amount, tolerating currency symbols and thousands separators.

    Comma decimal separators and non-finite values give None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, str):
            if _uses_decimal_comma(value):
                return None
            value = _NON_NUMERIC.sub("", value).replace(",", "")
            if not value:
                return None
        result = Decimal(str(value))
        if not result.is_finite():
            return None
        return round_amount(result)
    except (InvalidOperation, TypeError, ValueError):
        return None


def _safe_date(value: Any) -> Optional[datetime]:
    """Parse a date or datetime into naive local time."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str):
        return None

    value = value.strip()
    try:
        return to_local_naive(datetime.fromisoformat(value))
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text[:200] or None


class ScanResultValidator:
    """
    Turns scanner guesses into ExpenseDrafts.

    Category matching uses the categories that exist in the store at
    validation time; pass them in.
    """

    def __init__(
        self,
        category_names: Iterable[str],
        settings: Optional[ScannerSettings] = None,
    ):
        self._categories = {name.lower(): name for name in category_names}
        self._settings = settings or get_settings().scanner

    def _validate_amount(self, raw: Any) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        amount = _safe_decimal(raw)
        if amount is None and _uses_decimal_comma(raw):
            return None, [ValidationIssue(
                field="amount",
                issue_type="ambiguous_format",
                message=f"The amount '{raw}' uses a comma as the decimal separator",
                severity="error",
                suggested_fix="Enter the amount manually using a decimal point",
            )]
        if amount is None:
            return None, [ValidationIssue(
                field="amount",
                issue_type="missing",
                message="The amount could not be read",
                severity="error",
                suggested_fix="Enter the amount manually",
            )]
        if amount <= 0:
            return None, [ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount must be greater than zero (read {amount})",
                severity="error",
                suggested_fix="Check the total on the receipt",
            )]
        return amount, []

    def _validate_date(self, raw: Any, now: datetime) -> tuple[datetime, list[ValidationIssue]]:
        parsed = _safe_date(raw)
        if parsed is None:
            return now, [ValidationIssue(
                field="date",
                issue_type="fallback_applied",
                message="The date could not be read; using today",
                severity="warning",
                suggested_fix="Check the date before saving",
            )]

        issues = []
        tolerance = timedelta(days=self._settings.future_date_tolerance_days)
        if parsed > now + tolerance:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date {parsed:%d %b %Y} is in the future",
                severity="warning",
                suggested_fix="Check if the date was read correctly",
            ))
        return parsed, issues

    def _match_category(self, raw: Any) -> tuple[str, list[ValidationIssue]]:
        text = _clean_text(raw)
        if text and text.lower() in self._categories:
            return self._categories[text.lower()], []

        category = self._categories.get(FALLBACK_CATEGORY.lower(), FALLBACK_CATEGORY)
        return category, [ValidationIssue(
            field="category",
            issue_type="fallback_applied",
            message=(
                f"Category '{text}' does not exist; using {category}"
                if text else f"No category detected; using {category}"
            ),
            severity="info",
        )]

    def _match_payment_mode(self, raw: Any) -> tuple[PaymentMode, list[ValidationIssue]]:
        text = _clean_text(raw)
        if text:
            for mode in PaymentMode:
                if mode.value.lower() == text.lower():
                    return mode, []
        if text is None:
            return PaymentMode.OTHER, []
        return PaymentMode.OTHER, [ValidationIssue(
            field="payment_mode",
            issue_type="fallback_applied",
            message=f"Unknown payment mode '{text}'; using Other",
            severity="info",
        )]

    def _pick_title(self, raw: Any) -> tuple[str, list[ValidationIssue]]:
        title = _clean_text(raw)
        if title:
            return title, []
        return self._settings.fallback_title, [ValidationIssue(
            field="title",
            issue_type="fallback_applied",
            message="No merchant name detected",
            severity="info",
            suggested_fix="Enter a title for this expense",
        )]

    def _build_draft(
        self,
        title: Any,
        amount: Any,
        date_value: Any,
        category: Any,
        payment_mode: Any,
        now: datetime,
    ) -> ExpenseDraft:
        issues: list[ValidationIssue] = []

        title_value, found = self._pick_title(title)
        issues.extend(found)
        amount_value, found = self._validate_amount(amount)
        issues.extend(found)
        date_parsed, found = self._validate_date(date_value, now)
        issues.extend(found)
        category_value, found = self._match_category(category)
        issues.extend(found)
        mode_value, found = self._match_payment_mode(payment_mode)
        issues.extend(found)

        return ExpenseDraft(
            title=title_value,
            amount=amount_value,
            date=date_parsed,
            category=category_value,
            payment_mode=mode_value,
            issues=issues,
        )

    def draft_from_receipt(
        self,
        scanned: ScannedReceipt,
        now: Optional[datetime] = None,
    ) -> ExpenseDraft:
        """Pre-fill an expense form from a single-receipt scan."""
        now = to_local_naive(now or datetime.now())
        draft = self._build_draft(
            title=scanned.vendor,
            amount=scanned.amount,
            date_value=scanned.date,
            category=scanned.category,
            payment_mode=None,
            now=now,
        )
        logger.debug(
            "receipt_draft_built",
            scan_id=str(scanned.scan_id),
            issues=len(draft.issues),
            has_errors=draft.has_errors,
        )
        return draft

    def drafts_from_line_items(
        self,
        items: Iterable[ScannedLineItem],
        now: Optional[datetime] = None,
    ) -> list[ExpenseDraft]:
        """One draft per scanned document entry, in document order."""
        now = to_local_naive(now or datetime.now())
        return [
            self._build_draft(
                title=item.title,
                amount=item.amount,
                date_value=item.date,
                category=item.category,
                payment_mode=item.payment_mode,
                now=now,
            )
            for item in items
        ]
