# union_core/gis/address.py
"""
Address -> PNU resolution.

PNU layout (19 digits):
  legal-dong code (10) + land type (1: general, 2: mountain)
  + main lot number (4, zero padded) + sub lot number (4, zero padded)

The external lookup service is tried first; when it fails the PNU is
derived from structured address components.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

PNU_RE = re.compile(r"^\d{19}$")
LEGAL_DONG_RE = re.compile(r"^\d{10}$")
# "산 12-3", "산12", "123-45", "7"
JIBUN_RE = re.compile(r"(?P<mountain>산\s*)?(?P<main>\d{1,4})(?:-(?P<sub>\d{1,4}))?\s*$")

SOURCE_LOOKUP = "lookup"
SOURCE_DERIVED = "derived"


class AddressLookupError(Exception):
    """Neither the lookup service nor the components produced a PNU."""


def is_valid_pnu(pnu: Optional[str]) -> bool:
    return bool(pnu) and PNU_RE.match(pnu) is not None


@dataclass(frozen=True)
class AddressComponents:
    legal_dong_code: str
    main_number: int
    sub_number: int = 0
    is_mountain: bool = False


@dataclass(frozen=True)
class PnuResolution:
    pnu: str
    address: str
    source: str


def parse_jibun(text: str) -> Optional[tuple[bool, int, int]]:
    """'미아동 산 12-3' -> (True, 12, 3); None when no lot number is found."""
    m = JIBUN_RE.search((text or "").strip())
    if not m:
        return None
    return bool(m.group("mountain")), int(m.group("main")), int(m.group("sub") or 0)


def derive_pnu(components: AddressComponents) -> str:
    if not LEGAL_DONG_RE.match(components.legal_dong_code or ""):
        raise AddressLookupError("legal_dong_code must be 10 digits")
    if not (0 < components.main_number <= 9999) or not (0 <= components.sub_number <= 9999):
        raise AddressLookupError("lot numbers must be between 0 and 9999")

    land_type = "2" if components.is_mountain else "1"
    return f"{components.legal_dong_code}{land_type}{components.main_number:04d}{components.sub_number:04d}"


def lookup_pnu(address: str) -> Optional[PnuResolution]:
    """
    POST {address} to the lookup service; expects
      {"success": true, "data": {"address": "...", "pnu": "..."}}
    Returns None when the service has no answer. Transport errors raise.
    """
    url = getattr(settings, "ADDRESS_LOOKUP_URL", "")
    if not url:
        raise AddressLookupError("address lookup service is not configured")

    headers = {"Content-Type": "application/json"}
    token = getattr(settings, "ADDRESS_LOOKUP_TOKEN", "")
    if token:
        headers["Authorization"] = f"Bearer {token}"

    try:
        res = requests.post(
            url,
            json={"address": address.strip()},
            headers=headers,
            timeout=settings.EXTERNAL_HTTP_TIMEOUT,
        )
        body = res.json()
    except (requests.RequestException, ValueError) as exc:
        raise AddressLookupError(f"address lookup failed: {exc}") from exc

    if res.status_code != 200:
        raise AddressLookupError(f"address lookup HTTP {res.status_code}: {body.get('error', '')}")

    data = body.get("data") if body.get("success") else None
    if not data or not is_valid_pnu(data.get("pnu")):
        return None
    return PnuResolution(pnu=data["pnu"], address=data.get("address") or address.strip(), source=SOURCE_LOOKUP)


def resolve_pnu(address: str, components: Optional[AddressComponents] = None) -> PnuResolution:
    address = (address or "").strip()
    if not address and components is None:
        raise AddressLookupError("address is required")

    if address:
        try:
            found = lookup_pnu(address)
            if found is not None:
                return found
        except AddressLookupError as exc:
            logger.warning("address lookup unavailable, falling back to components: %s", exc)

    if components is None:
        raise AddressLookupError("no PNU found for address")

    return PnuResolution(pnu=derive_pnu(components), address=address, source=SOURCE_DERIVED)
