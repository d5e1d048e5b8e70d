"""TWQR personal-transfer payload encoding.

Serializes transfer details into the ``TWQRP://`` URI embedded in the QR
code. Field tags and their order are fixed by the interbank standard and
must match byte-for-byte:

* ``D5``  bank code
* ``D6``  account id, zero-padded to 16 characters
* ``D1``  amount in minor units (cents), only with an amount
* ``D10`` currency code ``901`` (TWD), only with an amount
* ``D9``  full-width message, only when non-blank
* ``D97`` local timestamp ``YYYYMMDDHHMMSS``, only when requested
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import MAX_EMAX, MAX_PREC, ROUND_DOWN, Decimal, localcontext
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

# Host is the punycode form of 個人轉帳 ("personal transfer")
BASE_URL = "TWQRP://xn--gmqw5ax42ad01c/158/02/V1"

ACCOUNT_ID_LENGTH = 16
MESSAGE_MAX_LENGTH = 19
CURRENCY_CODE_TWD = "901"
# Byte capacity of the largest QR symbol; longer amounts can never be encoded
AMOUNT_MAX_DIGITS = 2953

FULL_WIDTH_OFFSET = 0xFEE0
FULL_WIDTH_SPACE = "　"


@dataclass(frozen=True)
class TransferRequest:
    """Bank transfer details entered by the payee."""

    bank_code: str
    account_id: str
    payee_name: str = ""
    amount: Decimal | float | int | str | None = None
    message: str = ""

    @property
    def is_complete(self) -> bool:
        """True when both required fields are present."""
        return bool(self.bank_code and self.account_id)


def to_full_width(text: str) -> str:
    """Shift printable ASCII to the full-width block and spaces to U+3000."""
    chars = []
    for char in text:
        code = ord(char)
        if 0x21 <= code <= 0x7E:
            chars.append(chr(code + FULL_WIDTH_OFFSET))
        elif char == " ":
            chars.append(FULL_WIDTH_SPACE)
        else:
            chars.append(char)
    return "".join(chars)


def parse_amount(amount: Decimal | float | int | str | None) -> Decimal | None:
    """Return *amount* as a Decimal, or None when absent, zero or unparseable."""
    if amount is None or amount == "":
        return None
    try:
        value = Decimal(str(amount).strip())
    except ArithmeticError:
        logger.debug("Ignoring unparseable amount %r", amount)
        return None
    if not value.is_finite() or value == 0:
        return None
    if value.adjusted() >= AMOUNT_MAX_DIGITS:
        logger.debug("Ignoring amount with more than %d digits", AMOUNT_MAX_DIGITS)
        return None
    return value


def to_minor_units(amount: Decimal) -> str:
    """Convert a currency amount to cents, truncating toward zero.

    Arithmetic runs with unbounded precision, so amounts wider than the
    default 28-digit context stay exact.
    """
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        ctx.Emax = MAX_EMAX
        cents = amount.scaleb(2).quantize(Decimal(1), rounding=ROUND_DOWN)
    if not cents:
        return "0"
    return format(cents, "f")


def format_timestamp(moment: datetime) -> str:
    return moment.strftime("%Y%m%d%H%M%S")


def encode(
    request: TransferRequest,
    include_timestamp: bool = False,
    now: datetime | None = None,
) -> str:
    """Build the TWQR wire payload for *request*.

    Callers gate on :attr:`TransferRequest.is_complete`; this function does
    not validate the required fields. Accounts longer than 16 characters are
    passed through unpadded, never truncated.

    Args:
        request: Transfer details.
        include_timestamp: Emit ``D97`` with the local time.
        now: Clock override for ``D97`` (defaults to ``datetime.now()``).

    Returns:
        The ``TWQRP://`` URI string.
    """
    params: list[tuple[str, str]] = [
        ("D5", request.bank_code),
        ("D6", request.account_id.rjust(ACCOUNT_ID_LENGTH, "0")),
    ]

    amount = parse_amount(request.amount)
    if amount is not None:
        params.append(("D1", to_minor_units(amount)))
        params.append(("D10", CURRENCY_CODE_TWD))

    message = (request.message or "").strip()[:MESSAGE_MAX_LENGTH].rstrip()
    if message:
        params.append(("D9", to_full_width(message)))

    if include_timestamp:
        params.append(("D97", format_timestamp(now or datetime.now())))

    return f"{BASE_URL}?{urlencode(params)}"
