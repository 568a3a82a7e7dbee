"""Recipient address normalization."""

import re
from typing import Any, NamedTuple, Optional

from config.settings import DEFAULT_ADDRESS_DOMAIN

DOMAIN_SEPARATOR = "@"
_DIGITS_ONLY = re.compile(r"^\d+$")


class AddressCheck(NamedTuple):
    ok: bool
    normalized: Optional[str]


def normalize_address(
    text: Any, default_domain: str = DEFAULT_ADDRESS_DOMAIN
) -> AddressCheck:
    """Canonicalize free-form recipient text into a transport address.

    Anything already containing "@" is taken as fully qualified. A string of
    digits gets the default domain appended. Everything else is rejected.
    """
    if text is None:
        return AddressCheck(False, None)
    candidate = str(text).strip()
    if not candidate:
        return AddressCheck(False, None)
    if DOMAIN_SEPARATOR in candidate:
        return AddressCheck(True, candidate)
    if _DIGITS_ONLY.match(candidate):
        return AddressCheck(True, f"{candidate}{DOMAIN_SEPARATOR}{default_domain}")
    return AddressCheck(False, None)
