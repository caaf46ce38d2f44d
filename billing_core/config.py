"""
billing_core.config
Central configuration/constants.
"""
from __future__ import annotations
from decimal import Decimal

# outputs (folders)
DEFAULT_OUTPUT_DIR = "output"

MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

DATE_FORMATS = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
)

# raw status flags seen on bill payloads (compared lower-cased)
INVOICED_FLAGS = ("1", "invoice", "invoiced")
NOT_INVOICED_FLAGS = ("", "0", "not invoiced", "not-invoiced", "pending", "none")

# accrued = not invoiced and amount > ACCRUAL_THRESHOLD
ACCRUAL_THRESHOLD = Decimal("0")

UNKNOWN_GROUP = "Unknown"
PLACEHOLDER = "-"
GRAND_TOTAL_LABEL = "Grand Total"

CURRENCY_LABEL = "RM"
TREND_WINDOW = 5

# spreadsheet
AUTOFIT_MIN_WIDTH = 10
AUTOFIT_MAX_WIDTH = 42
HEADER_FILL = "D9EAF7"
TREND_HEADER_FILL = "F0F0F0"
NUMBER_FORMAT = "#,##0.00"
PERCENT_FORMAT = "0.00"

# memo (pdf)
MEMO_RECIPIENT = "Head of Finance"
MEMO_SENDER = "Human Resource and Administration"
MEMO_COMPANY = "Ranhill Technologies Sdn Bhd"
MEMO_FOOTER = "This document is generated by ADMS4"
MEMO_CLOSING = "Your cooperation on the above is highly appreciated."

DEFAULT_SIGNATORIES = (
    ("Prepared by,", "NOR AFFISHA NAJEEHA BT AFFIDIN", "Admin Assistant"),
    ("Checked by,", "MUHAMMAD ARIF BIN ABDUL JALIL", "Senior Executive Administration"),
    ("Approved by,", "KAMARIAH BINTI YUSOF", "Head of Human Resources and Administration"),
)

# points; closing line + company + captions + names + titles + Date: lines
SIGNATURE_BLOCK_HEIGHT = 170
PAGE_MARGIN_MM = 14
FOOTER_RESERVE_MM = 22
