"""Data normalization utilities for consistent data quality."""

import re
import unicodedata
from typing import Optional


# =============================================================================
# Brazilian states
# =============================================================================

VALID_STATE_CODES = {
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS", "MG",
    "PA", "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE",
    "TO",
}

# Lowercase connectives kept lowercase inside proper names ("Maria da Silva")
LOWERCASE_NAME_WORDS = {"da", "de", "do", "das", "dos", "e"}


def strip_accents(value: str) -> str:
    """Remove diacritics: "Atílio" -> "Atilio"."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def digits_only(value: Optional[str]) -> str:
    """Keep only digits (documents, phones, zip codes)."""
    if not value:
        return ""
    return re.sub(r"\D", "", str(value))


def normalize_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize name by stripping whitespace and collapsing multiple spaces.

    Returns:
        Cleaned name or None if empty
    """
    if not name:
        return None
    cleaned = " ".join(name.split())
    return cleaned or None


def title_case_name(name: Optional[str]) -> str:
    """
    Title-case a person's name, keeping Portuguese connectives lowercase.

    "JOÃO DA SILVA" -> "João da Silva"
    """
    cleaned = normalize_name(name)
    if not cleaned:
        return ""
    words = []
    for index, word in enumerate(cleaned.lower().split(" ")):
        if index > 0 and word in LOWERCASE_NAME_WORDS:
            words.append(word)
        else:
            words.append(word[:1].upper() + word[1:])
    return " ".join(words)


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Normalize email to lowercase."""
    if not email:
        return None
    return email.strip().lower() or None


def normalize_state(state: Optional[str]) -> Optional[str]:
    """
    Normalize a state (UF) to its 2-letter uppercase code.

    Raises:
        ValueError: If state is not a recognized Brazilian UF
    """
    if not state:
        return None
    upper = state.strip().upper()
    if not upper:
        return None
    if upper not in VALID_STATE_CODES:
        raise ValueError(f"Invalid state '{state}'. Use a 2-letter UF code (e.g., SP).")
    return upper


def username_from_name(name: str) -> str:
    """
    Derive a login username from a display name.

    "Francis Júnio" -> "francis.junio"
    """
    ascii_name = strip_accents(name).lower()
    parts = re.findall(r"[a-z0-9]+", ascii_name)
    return ".".join(parts)


_STREET_PREFIX = re.compile(r"\b(R|RUA|AV|AVENIDA|TRAV|TRAVESSA|AL|ALAMEDA)\b\.?\s+", re.IGNORECASE)


def street_for_search(street: Optional[str]) -> str:
    """
    Reduce a street line to the bare name used by address search.

    "RUA DAS FLORES, 120 - APTO 3" -> "DAS FLORES"
    """
    if not street:
        return ""
    base = street.split(",")[0].split("-")[0]
    base = re.sub(r"\d+\s*$", "", base)
    return _STREET_PREFIX.sub("", base).strip()
