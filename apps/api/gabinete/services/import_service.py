"""Smart Import: CSV constituent import and legacy tag reconciliation.

A free-text token blob ("ALINE, APOIADOR / ZONA SUL") encodes two things at
once: segmentation tags and the constituent's responsible team member. Each
segment is classified as EITHER a tag OR a responsible-name signal, by
membership in a fixed list of known names.

Reconciliation is a fold: the known-users tuple goes in and comes back out
(possibly with an auto-provisioned ASSESSOR appended), so a user created for
row N is visible to row N+1 without re-reading the database.
"""

from __future__ import annotations

import csv
import io
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from sqlalchemy import select

from gabinete.core.config import settings
from gabinete.db.base import utc_now
from gabinete.db.enums import EntityKind, LogAction, LogModule, Role, UserStatus
from gabinete.db.models import Active, Constituent, User
from gabinete.services.geo_service import GeoClient
from gabinete.services.lifecycle_service import EntityLifecycle
from gabinete.utils.normalization import (
    digits_only,
    strip_accents,
    street_for_search,
    title_case_name,
    username_from_name,
)

logger = logging.getLogger(__name__)

TOKEN_SEPARATORS = re.compile(r"[,;/|]")

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 100


# =============================================================================
# Token classification
# =============================================================================

@dataclass(frozen=True)
class TokenClassification:
    tags: tuple[str, ...]
    responsible_name: str | None = None


@dataclass(frozen=True)
class RowReconciliation:
    tags: tuple[str, ...]
    responsible_user_id: str = ""
    provisioned_user: User | None = None


def split_tokens(raw: str | None) -> list[str]:
    """Split on , ; / | and return the uppercased, trimmed, non-empty segments."""
    if not raw:
        return []
    return [segment.strip().upper() for segment in TOKEN_SEPARATORS.split(raw) if segment.strip()]


def _fold(value: str) -> str:
    return " ".join(strip_accents(value).upper().split())


def match_responsible_name(token: str, known_names: Sequence[str]) -> str | None:
    """
    Return the known name a token refers to, if any.

    Matches exactly, or as the leading word(s) of a multi-word name
    ("FRANCIS" -> "FRANCIS JUNIO"). Accents and case are ignored.
    """
    folded = _fold(token)
    if not folded:
        return None
    for name in known_names:
        known = _fold(name)
        if folded == known:
            return name
        if " " in known and known.startswith(folded + " "):
            return name
    return None


def classify_tokens(
    tokens: Iterable[str], known_names: Sequence[str]
) -> TokenClassification:
    """
    Partition tokens into tags and a responsible-name signal.

    Tags keep first-seen order without duplicates. Only the first
    responsible signal is used; later ones are dropped (never kept as tags).
    """
    tags: list[str] = []
    responsible: str | None = None
    for token in tokens:
        token = token.strip().upper()
        if not token:
            continue
        matched = match_responsible_name(token, known_names)
        if matched is not None:
            if responsible is None:
                responsible = matched
            continue
        if token not in tags:
            tags.append(token)
    return TokenClassification(tags=tuple(tags), responsible_name=responsible)


# =============================================================================
# Responsible user resolution (fold over the known users)
# =============================================================================

def _unique_username(base: str, users: Sequence[User]) -> str:
    taken = {u.username for u in users if u.username} | {
        u.email.split("@")[0] for u in users if u.email
    }
    candidate = base or "assessor"
    suffix = 2
    while candidate in taken:
        candidate = f"{base}{suffix}"
        suffix += 1
    return candidate


def resolve_responsible(
    name: str, users: tuple[User, ...]
) -> tuple[User, tuple[User, ...], bool]:
    """
    Find the team member behind a responsible name, creating one if needed.

    Existing users match when their name contains ``name`` (case and
    accent insensitive). Otherwise a new ACTIVE ASSESSOR is built (not
    persisted) and appended to the returned tuple.

    Returns:
        (user, users, created)
    """
    needle = _fold(name)
    for user in users:
        if needle in _fold(user.name or ""):
            return user, users, False

    display_name = title_case_name(name)
    username = _unique_username(username_from_name(display_name), users)
    now = utc_now()
    user = User(
        id=uuid.uuid4(),
        name=display_name,
        username=username,
        email=f"{username}@{settings.IMPORT_EMAIL_DOMAIN}",
        role=Role.ASSESSOR.value,
        status=UserStatus.ACTIVE.value,
        sectors=[],
        token_version=1,
        created_at=now,
        updated_at=now,
    )
    return user, users + (user,), True


def reconcile_tokens(
    raw: str | None,
    users: tuple[User, ...],
    known_names: Sequence[str],
) -> tuple[RowReconciliation, tuple[User, ...]]:
    """Classify a raw token blob and resolve its responsible signal."""
    classification = classify_tokens(split_tokens(raw), known_names)
    if classification.responsible_name is None:
        return RowReconciliation(tags=classification.tags), users

    user, users, created = resolve_responsible(classification.responsible_name, users)
    return (
        RowReconciliation(
            tags=classification.tags,
            responsible_user_id=str(user.id),
            provisioned_user=user if created else None,
        ),
        users,
    )


# =============================================================================
# CSV parsing and column mapping
# =============================================================================

# Canonical field -> header keywords (substring match, case-insensitive)
COLUMN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "name": ("nome", "name", "eleitor", "cidadão", "completo"),
    "document": ("cpf", "documento", "cnpj", "identidade"),
    "mobile_phone": ("telefone", "celular", "whatsapp", "mobile", "contato"),
    "zip_code": ("cep", "zip"),
    "street": ("rua", "logradouro", "endereço", "address", "street"),
    "number": ("número", "nº", "number", "num"),
    "neighborhood": ("bairro", "neighborhood", "região"),
    "city": ("cidade", "city", "localidade"),
    "state": ("uf", "estado", "state", "sigla"),
    "tags": ("tags", "observações", "legado", "notas", "perfil", "grupos"),
}


def parse_csv_file(file_content: bytes | str) -> tuple[list[str], list[dict[str, str]]]:
    """
    Parse CSV content into headers and row dicts keyed by header.

    Accepts comma or semicolon delimited files; blank lines are skipped.
    """
    if isinstance(file_content, bytes):
        file_content = file_content.decode("utf-8-sig")  # Handle BOM

    first_line = file_content.split("\n", 1)[0]
    delimiter = ";" if first_line.count(";") > first_line.count(",") else ","
    reader = csv.reader(io.StringIO(file_content), delimiter=delimiter)
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        return [], []

    headers = [h.strip() for h in rows[0]]
    data_rows = [
        {header: (row[i].strip() if i < len(row) else "") for i, header in enumerate(headers)}
        for row in rows[1:]
    ]
    return headers, data_rows


def auto_map_columns(headers: Sequence[str]) -> dict[str, str]:
    """
    Guess which header feeds each canonical field.

    Returns:
        Dict of {field: header}; fields without a matching header are absent
    """
    mapping: dict[str, str] = {}
    for field_name, keywords in COLUMN_KEYWORDS.items():
        for header in headers:
            lowered = header.lower()
            if any(keyword in lowered for keyword in keywords):
                mapping[field_name] = header
                break
    return mapping


def row_to_record(row: dict[str, str], mapping: dict[str, str]) -> dict[str, str]:
    """Project a raw CSV row onto canonical field names."""
    return {
        field_name: (row.get(header) or "").strip()
        for field_name, header in mapping.items()
        if header
    }


def build_constituent_payload(
    record: dict[str, str],
    reconciliation: RowReconciliation,
    row_number: int,
    default_city: str = "",
    default_state: str = "",
) -> dict[str, Any]:
    """
    Normalize one import record into constituent fields.

    Raises:
        ValueError: If the row cannot produce a valid name
    """
    name = title_case_name(record.get("name")) or f"Record #{row_number}"
    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        raise ValueError(f"Invalid name length on row {row_number}")

    marker = settings.IMPORT_MARKER_TAG
    tags = [marker, *(tag for tag in reconciliation.tags if tag != marker)]

    return {
        "name": name,
        "document": digits_only(record.get("document")),
        "mobile_phone": digits_only(record.get("mobile_phone")),
        "address": {
            "zip_code": digits_only(record.get("zip_code")),
            "street": (record.get("street") or "").upper(),
            "number": record.get("number") or "",
            "complement": "",
            "neighborhood": (record.get("neighborhood") or "").upper(),
            "city": (record.get("city") or default_city or "").upper(),
            "state": (record.get("state") or default_state or "").upper(),
        },
        "tags": tags,
        "is_leadership": False,
        "responsible_user_id": reconciliation.responsible_user_id,
    }


# =============================================================================
# Batch creation
# =============================================================================

@dataclass
class ImportResult:
    created: int = 0
    skipped: int = 0
    provisioned_users: list[User] = field(default_factory=list)
    audit_complete: bool = True


def _lookup_zip(geo_client: GeoClient, address: dict[str, str]) -> str:
    street = street_for_search(address.get("street"))
    if len(street) < 3 or not address.get("city") or not address.get("state"):
        return ""
    candidates = geo_client.find_zip_codes(address["state"], address["city"], street)
    return candidates[0]["zip_code"] if candidates else ""


def _log_provisioned(
    lifecycle: EntityLifecycle, actor: User, users: Iterable[User]
) -> bool:
    complete = True
    for user in users:
        entry = lifecycle.audit.log(
            LogAction.CREATE,
            LogModule.CONTROL_CENTER,
            user.id,
            actor,
            meta={"name": user.name, "role": user.role, "source": "import"},
        )
        complete = complete and entry is not None
    return complete


def batch_create_constituents(
    lifecycle: EntityLifecycle,
    actor: User,
    records: Sequence[dict[str, str]],
    default_city: str = "",
    default_state: str = "",
    geo_client: GeoClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
    known_names: Sequence[str] | None = None,
) -> ImportResult:
    """
    Create constituents from mapped import records in one atomic write.

    Rows are processed strictly in order. A row that fails is logged and
    skipped; the rest of the batch still commits. When ``geo_client`` is
    given, rows without a zip code get one looked up from their address,
    throttled between lookups.
    """
    db = lifecycle.db
    known = list(known_names) if known_names is not None else settings.known_responsible_names
    users: tuple[User, ...] = tuple(db.scalars(select(User)).all())
    result = ImportResult()
    constituents: list[Constituent] = []
    zip_lookups = 0

    for row_number, record in enumerate(records, start=1):
        try:
            reconciliation, row_users = reconcile_tokens(record.get("tags"), users, known)
            payload = build_constituent_payload(
                record, reconciliation, row_number, default_city, default_state
            )
            if geo_client is not None and not payload["address"]["zip_code"]:
                if zip_lookups:
                    sleep(settings.GEOCODE_THROTTLE_SECONDS)
                zip_lookups += 1
                payload["address"]["zip_code"] = _lookup_zip(geo_client, payload["address"])
        except ValueError:
            result.skipped += 1
            logger.warning("Import row skipped", extra={"row": row_number}, exc_info=True)
            continue

        users = row_users
        if reconciliation.provisioned_user is not None:
            result.provisioned_users.append(reconciliation.provisioned_user)

        now = utc_now()
        constituent = Constituent(
            id=uuid.uuid4(),
            **payload,
            created_by=actor.id,
            updated_by=actor.id,
            created_at=now,
            updated_at=now,
        )
        constituent.deletion_state = Active()
        constituents.append(constituent)

    if not constituents:
        return result

    db.add_all([*result.provisioned_users, *constituents])
    db.commit()
    result.created = len(constituents)

    logger.info(
        "Constituent import committed",
        extra={
            "created": result.created,
            "skipped": result.skipped,
            "provisioned": len(result.provisioned_users),
        },
    )
    complete = _log_provisioned(lifecycle, actor, result.provisioned_users)
    entry = lifecycle.audit.log(
        LogAction.CREATE,
        LogModule.CONSTITUENT,
        "batch",
        actor,
        meta={"count": result.created, "skipped": result.skipped, "source": "import"},
    )
    result.audit_complete = complete and entry is not None
    return result


def import_constituents_csv(
    lifecycle: EntityLifecycle,
    actor: User,
    file_content: bytes | str,
    mapping: dict[str, str] | None = None,
    default_city: str = "",
    default_state: str = "",
    geo_client: GeoClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ImportResult:
    """Parse, map and batch-create constituents from a CSV upload."""
    headers, rows = parse_csv_file(file_content)
    if not headers:
        return ImportResult()
    column_map = mapping or auto_map_columns(headers)
    records = [row_to_record(row, column_map) for row in rows]
    return batch_create_constituents(
        lifecycle,
        actor,
        records,
        default_city=default_city,
        default_state=default_state,
        geo_client=geo_client,
        sleep=sleep,
    )


# =============================================================================
# Legacy tag reconciliation
# =============================================================================

@dataclass
class LegacyReconcileResult:
    updated: int = 0
    provisioned_users: list[User] = field(default_factory=list)


def reconcile_legacy_tags(
    lifecycle: EntityLifecycle,
    actor: User,
    known_names: Sequence[str] | None = None,
) -> LegacyReconcileResult:
    """
    Re-run the classifier over existing constituents' tags.

    Responsible-name signals leave the tag list; they become the
    ``responsible_user_id`` only when the constituent is unassigned.
    Each changed constituent is audited through the lifecycle update.
    """
    db = lifecycle.db
    known = list(known_names) if known_names is not None else settings.known_responsible_names
    users: tuple[User, ...] = tuple(db.scalars(select(User)).all())
    result = LegacyReconcileResult()
    patches: list[tuple[uuid.UUID, dict[str, Any]]] = []

    for constituent in lifecycle.list_active(EntityKind.CONSTITUENT):
        tokens = [token for tag in (constituent.tags or []) for token in split_tokens(tag)]
        classification = classify_tokens(tokens, known)
        patch: dict[str, Any] = {}
        if list(classification.tags) != list(constituent.tags or []):
            patch["tags"] = list(classification.tags)
        if classification.responsible_name and not constituent.responsible_user_id:
            user, users, created = resolve_responsible(classification.responsible_name, users)
            if created:
                result.provisioned_users.append(user)
            patch["responsible_user_id"] = str(user.id)
        if patch:
            patches.append((constituent.id, patch))

    if result.provisioned_users:
        db.add_all(result.provisioned_users)
        db.commit()
        _log_provisioned(lifecycle, actor, result.provisioned_users)

    for constituent_id, patch in patches:
        lifecycle.update(EntityKind.CONSTITUENT, constituent_id, patch, actor)
        result.updated += 1
    return result
