"""Declarative pattern and keyword tables for receipt field extraction.

Each table is an ordered list of :class:`PatternEntry` rows iterated in
priority order by the extractors. Adding a format means adding a row
here; scoring logic lives in the extractor modules.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class PatternEntry:
    """One row of a pattern cascade.

    Attributes:
        name: Identifier of the format, used in logs and tests.
        regex: Compiled pattern.
        kind: Class of the format; tells the extractor how to read groups.
        group: Capture group holding the value (amount patterns only).
    """

    name: str
    regex: re.Pattern[str]
    kind: str
    group: int = 1


def _entry(
    name: str, pattern: str, kind: str, group: int = 1, flags: int = 0
) -> PatternEntry:
    return PatternEntry(
        name=name, regex=re.compile(pattern, flags), kind=kind, group=group
    )


def keyword_regex(keywords: Iterable[str]) -> re.Pattern[str]:
    """Compile keywords into one pattern matched against upper-cased text.

    A keyword must not touch another letter on either side, so ``OFF``
    does not fire inside ``COFFEE`` and ``ST`` not inside ``STARBUCKS``.
    """
    ordered = sorted({k.upper() for k in keywords}, key=len, reverse=True)
    alternation = "|".join(re.escape(k) for k in ordered)
    return re.compile(rf"(?<![A-Z])(?:{alternation})(?![A-Z])")


# --- Amounts -------------------------------------------------------------

# Thousands groups use comma or space; decimal marker is comma or period.
_INTEGER = r"(?:\d{1,3}(?:[, ]\d{3})+|\d{1,6})"
_NUMBER = rf"{_INTEGER}(?:[.,]\d{{1,2}})?"
_AMOUNT = rf"({_NUMBER})"
_GAP = r"[ \t]*"
# Bare numbers must not be pieces of dates, times, decimals or "#" references.
_BARE_BEFORE = r"(?<![\d/:.,\-#])"
_BARE_AFTER = r"(?![\d/:]|[.,\-]\d)"

_CURRENCY_PREFIXES: list[tuple[str, str, int]] = [
    ("usd_symbol", r"US\$", 0),
    ("usd_dotted", r"U\.S\.\$", 0),
    ("usd_code", r"USD", re.IGNORECASE),
    ("cad_symbol", r"C\$", 0),
    ("cad_ca_symbol", r"CA\$", 0),
    ("cad_code", r"CAD", re.IGNORECASE),
    ("cad_can_symbol", r"Can\$", 0),
    ("aud_symbol", r"A\$", 0),
    ("aud_au_symbol", r"AU\$", 0),
    ("aud_code", r"AUD", re.IGNORECASE),
    ("eur_symbol", r"€", 0),
    ("eur_code", r"EUR", re.IGNORECASE),
    ("gbp_symbol", r"£", 0),
    ("gbp_code", r"GBP", re.IGNORECASE),
    ("gbp_gb_symbol", r"GB£", 0),
    ("gbp_uk_symbol", r"UK£", 0),
    ("dollar", r"\$", 0),
    ("nzd_symbol", r"NZ\$", 0),
    ("hkd_symbol", r"HK\$", 0),
    ("sgd_symbol", r"S\$", 0),
    ("mxn_symbol", r"MX\$", 0),
    ("chf_code", r"CHF", re.IGNORECASE),
    ("yen_symbol", r"¥", 0),
    ("yen_fullwidth", r"￥", 0),
    ("jpy_code", r"JPY", re.IGNORECASE),
    ("cny_code", r"CNY", re.IGNORECASE),
    ("rmb_code", r"RMB", re.IGNORECASE),
    ("inr_symbol", r"₹", 0),
    ("inr_code", r"INR", re.IGNORECASE),
    ("rupee_abbrev", r"Rs\.", 0),
]

_CURRENCY_SUFFIXES: list[tuple[str, str, int]] = [
    ("usd_code_suffix", r"USD", re.IGNORECASE),
    ("cad_code_suffix", r"CAD", re.IGNORECASE),
    ("aud_code_suffix", r"AUD", re.IGNORECASE),
    ("eur_symbol_suffix", r"€", 0),
    ("eur_code_suffix", r"EUR", re.IGNORECASE),
    ("gbp_code_suffix", r"GBP", re.IGNORECASE),
    ("dollar_suffix", r"\$", 0),
]

AMOUNT_PATTERNS: list[PatternEntry] = (
    [
        _entry(name, rf"{prefix}{_GAP}{_AMOUNT}(?!\d)", "currency", flags=flags)
        for name, prefix, flags in _CURRENCY_PREFIXES
    ]
    + [
        _entry(name, rf"(?<![\d.,]){_AMOUNT}{_GAP}{suffix}", "currency", flags=flags)
        for name, suffix, flags in _CURRENCY_SUFFIXES
    ]
    + [
        _entry(
            "bare_two_decimals",
            rf"{_BARE_BEFORE}({_INTEGER}[.,]\d{{2}}){_BARE_AFTER}",
            "bare",
        ),
        _entry(
            "bare_one_decimal",
            rf"{_BARE_BEFORE}({_INTEGER}[.,]\d){_BARE_AFTER}",
            "bare",
        ),
        _entry("bare_integer", rf"{_BARE_BEFORE}(\d{{1,6}}){_BARE_AFTER}", "bare"),
    ]
)

GRAND_KEYWORDS = ["GRAND TOTAL", "GRANDTOTAL", "GRAND-TOTAL", "GRAND_TOTAL"]
FINAL_KEYWORDS = ["FINAL TOTAL", "FINALTOTAL", "FINAL-TOTAL", "FINAL AMOUNT"]
SUBTOTAL_KEYWORDS = ["SUBTOTAL", "SUB TOTAL", "SUB-TOTAL", "SUB_TOTAL"]
TOTAL_KEYWORDS = [
    "TOTAL",
    "AMOUNT",
    "BALANCE",
    "DUE",
    "PAYABLE",
    "PAID",
    "PAYMENT",
    "AMOUNT DUE",
    "AMOUNT PAYABLE",
    "TOTAL AMOUNT",
    "TO PAY",
    "TOPAY",
    "TO-PAY",
    "TO_PAY",
    "TOTAL DUE",
    "TOTAL PAYABLE",
    "TOTAL PAID",
    "NET TOTAL",
    "NET AMOUNT",
    "NET DUE",
    # Frequent recognition errors: zero for O, one for I/L.
    "T0TAL",
    "AM0UNT",
    "T0 PAY",
    "TOTA1",
    "AM0UNT DUE",
    "SALE",
    "PURCHASE",
    "INVOICE",
    "RECEIPT TOTAL",
]

# (family, keywords) in ranking order: the first family present on a
# line decides the boost for that anchor.
AMOUNT_KEYWORD_FAMILIES: list[tuple[str, re.Pattern[str]]] = [
    ("grand", keyword_regex(GRAND_KEYWORDS)),
    ("final", keyword_regex(FINAL_KEYWORDS)),
    ("subtotal", keyword_regex(SUBTOTAL_KEYWORDS)),
    ("total", keyword_regex(TOTAL_KEYWORDS)),
]

AMOUNT_EXCLUDE_REGEX = keyword_regex(
    [
        "TAX",
        "VAT",
        "GST",
        "HST",
        "PST",
        "SALES TAX",
        "TAX AMOUNT",
        "TIP",
        "GRATUITY",
        "SERVICE CHARGE",
        "SERVICE FEE",
        *SUBTOTAL_KEYWORDS,
        "DISCOUNT",
        "SAVINGS",
        "OFF",
        "CHANGE",
        "CHANGE DUE",
        "CASH BACK",
    ]
)

# --- Dates and times -----------------------------------------------------

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_MONTH = r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?"

# kinds: dmy (day, month, 4-digit year), dmy_short (2-digit year),
# d_month_y / d_month_yy (day, month name, year), ymd, month_d_y.
DATE_PATTERNS: list[PatternEntry] = [
    _entry("d/m/yyyy", r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)", "dmy"),
    _entry("d-m-yyyy", r"(?<!\d)(\d{1,2})-(\d{1,2})-(\d{4})(?!\d)", "dmy"),
    _entry("d.m.yyyy", r"(?<!\d)(\d{1,2})\.(\d{1,2})\.(\d{4})(?!\d)", "dmy"),
    _entry(
        "d month yyyy",
        rf"(?<!\d)(\d{{1,2}})[ \t]+{_MONTH}[ \t]+(\d{{4}})(?!\d)",
        "d_month_y",
        flags=re.IGNORECASE,
    ),
    _entry(
        "d month yy",
        rf"(?<!\d)(\d{{1,2}})[ \t]+{_MONTH}[ \t]+(\d{{2}})(?!\d)",
        "d_month_yy",
        flags=re.IGNORECASE,
    ),
    _entry(
        "yyyy-m-d", r"(?<!\d)(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})(?!\d)", "ymd"
    ),
    _entry(
        "d/m/yy",
        r"(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2})(?!\d)",
        "dmy_short",
    ),
    _entry(
        "month d, yyyy",
        rf"(?<![A-Za-z]){_MONTH}[ \t]+(\d{{1,2}}),?[ \t]+(\d{{4}})(?!\d)",
        "month_d_y",
        flags=re.IGNORECASE,
    ),
]

DATE_KEYWORD_REGEX = keyword_regex(
    ["DATE", "TIME", "TRANSACTION", "PURCHASE", "SALE", "RECEIPT"]
)

# kinds: twelve_hour (hour, minute, meridiem), seconds (h, m, s), minutes (h, m).
TIME_PATTERNS: list[PatternEntry] = [
    _entry(
        "hh:mm am/pm",
        r"(?<![\d:])(\d{1,2}):(\d{2})(?::\d{2})?[ \t]*([AP])\.?M\.?(?![A-Za-z])",
        "twelve_hour",
        flags=re.IGNORECASE,
    ),
    _entry("hh:mm:ss", r"(?<![\d:])(\d{1,2}):(\d{2}):(\d{2})(?![\d:])", "seconds"),
    _entry("hh:mm", r"(?<![\d:])(\d{1,2}):(\d{2})(?![\d:])", "minutes"),
]

# --- Merchant lines ------------------------------------------------------

HEADER_REGEX = keyword_regex(
    [
        "RECEIPT",
        "INVOICE",
        "TAX INVOICE",
        "SALES RECEIPT",
        "PURCHASE RECEIPT",
        "VAT RECEIPT",
        "TILL RECEIPT",
        "CUSTOMER RECEIPT",
        "COPY",
        "DUPLICATE",
    ]
)

COMPANY_REGEX = keyword_regex(
    [
        "LTD",
        "LIMITED",
        "INC",
        "LLC",
        "PLC",
        "CO",
        "CORP",
        "CORPORATION",
        "COMPANY",
        "ENTERPRISES",
        "GROUP",
        "HOLDINGS",
        "GMBH",
        "PTY",
    ]
)

ADDRESS_REGEX = keyword_regex(
    [
        "STREET",
        "ROAD",
        "AVENUE",
        "LANE",
        "DRIVE",
        "ST",
        "RD",
        "AVE",
        "BLVD",
        "BOULEVARD",
        "HWY",
        "HIGHWAY",
        "SUITE",
    ]
)

CONTACT_REGEX = re.compile(
    r"@|(?<![A-Z])(?:TEL|PHONE|EMAIL|E-MAIL|FAX)(?![A-Z])|WWW\.?|HTTPS?"
)

# --- Merchant names ------------------------------------------------------

FRANCHISE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"#\s*\d+"),
    re.compile(r"\bStore\s*\d+", re.IGNORECASE),
    re.compile(r"\bLocation\s*\d+", re.IGNORECASE),
    re.compile(r"\bBranch\s*\d+", re.IGNORECASE),
    re.compile(r"\d{3,}"),
]
