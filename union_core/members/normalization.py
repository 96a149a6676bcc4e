# union_core/members/normalization.py
"""
String normalization used for duplicate-member matching.

Two member rows describe the same person when their normalized names match
and their normalized resident addresses (PNU or jibun) match.
"""
from __future__ import annotations

import re
from typing import Optional

_PARENS_RE = re.compile(r"\([^)]*\)")
_JIBUN_STRIP_RE = re.compile(r"[^A-Za-z0-9_\s가-힣-]")
_WS_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"\D")


def normalize_name(name: Optional[str]) -> str:
    """'김 철수 ' -> '김철수'; latin letters are lowercased."""
    if not name or not name.strip():
        return ""
    return _WS_RE.sub("", name).lower()


def normalize_jibun_address(address: Optional[str]) -> str:
    """
    Drops parenthesised parts and punctuation, collapses whitespace.

    '서울 강남구 역삼동 123-4 (역삼아파트)' -> '서울 강남구 역삼동 123-4'
    """
    if not address or not address.strip():
        return ""
    value = _PARENS_RE.sub("", address)
    value = _JIBUN_STRIP_RE.sub("", value)
    value = _WS_RE.sub(" ", value)
    return value.strip()


def normalize_phone(phone: Optional[str]) -> str:
    """Digits only: '010-1234-5678' -> '01012345678'."""
    if not phone:
        return ""
    return _NON_DIGIT_RE.sub("", phone)


def format_address_display(jibun: Optional[str], road: Optional[str]) -> str:
    jibun = (jibun or "").strip()
    road = (road or "").strip()
    if jibun and road:
        return f"{jibun} ({road})"
    return jibun or road
