"""Tests for Smart Import: token classification, CSV import, legacy reconciliation."""

import pytest
from sqlalchemy import select

from gabinete.core.config import settings
from gabinete.db.enums import EntityKind, LogModule, Role, UserStatus
from gabinete.db.models import User
from gabinete.services import import_service
from gabinete.services.import_service import (
    auto_map_columns,
    build_constituent_payload,
    classify_tokens,
    match_responsible_name,
    parse_csv_file,
    reconcile_tokens,
    resolve_responsible,
    split_tokens,
)

from conftest import constituent_data

KNOWN = ["ALINE", "ATILIO", "CARLINHOS", "MARCOS", "FRANCIS JUNIO"]


# =============================================================================
# Token classification
# =============================================================================

def test_split_tokens():
    assert split_tokens(" aline, apoiador / zona sul ;| ") == ["ALINE", "APOIADOR", "ZONA SUL"]
    assert split_tokens(None) == []


def test_classify_separates_tags_from_responsible():
    result = classify_tokens(split_tokens("ALINE, APOIADOR / ZONA SUL, APOIADOR, MARCOS"), KNOWN)
    assert result.tags == ("APOIADOR", "ZONA SUL")
    # First responsible wins; later ones are dropped, never kept as tags
    assert result.responsible_name == "ALINE"


def test_match_ignores_accents_and_matches_leading_words():
    assert match_responsible_name("Atílio", KNOWN) == "ATILIO"
    assert match_responsible_name("FRANCIS", KNOWN) == "FRANCIS JUNIO"
    assert match_responsible_name("JUNIO", KNOWN) is None
    assert match_responsible_name("ALINEA", KNOWN) is None


def test_resolve_responsible_matches_existing_user(assessor_user):
    users = (assessor_user,)
    user, returned, created = resolve_responsible("MARCOS", users)
    assert user is assessor_user
    assert returned == users
    assert created is False


def test_resolve_responsible_provisions_assessor():
    user, users, created = resolve_responsible("FRANCIS JUNIO", ())
    assert created is True
    assert users == (user,)
    assert user.name == "Francis Junio"
    assert user.username == "francis.junio"
    assert user.email == f"francis.junio@{settings.IMPORT_EMAIL_DOMAIN}"
    assert user.role == Role.ASSESSOR.value
    assert user.status == UserStatus.ACTIVE.value
    assert user.password_hash is None


def test_reconcile_tokens_folds_users_between_rows():
    first, users = reconcile_tokens("ALINE, APOIADOR", (), KNOWN)
    second, users_after = reconcile_tokens("aline", users, KNOWN)

    assert first.provisioned_user is not None
    assert second.provisioned_user is None
    assert second.responsible_user_id == first.responsible_user_id
    assert len(users_after) == 1


def test_reconcile_tokens_without_responsible():
    result, users = reconcile_tokens("APOIADOR", (), KNOWN)
    assert result.tags == ("APOIADOR",)
    assert result.responsible_user_id == ""
    assert users == ()


# =============================================================================
# CSV parsing and mapping
# =============================================================================

def test_parse_csv_semicolon_with_bom():
    content = "\ufeffNome;Celular\nMaria;11999990000\n\n;\nJosé;\n".encode("utf-8")
    headers, rows = parse_csv_file(content)
    assert headers == ["Nome", "Celular"]
    assert rows == [
        {"Nome": "Maria", "Celular": "11999990000"},
        {"Nome": "José", "Celular": ""},
    ]


def test_parse_csv_comma_and_empty():
    headers, rows = parse_csv_file("name,phone\nAna,123\n")
    assert headers == ["name", "phone"]
    assert rows == [{"name": "Ana", "phone": "123"}]
    assert parse_csv_file(b"") == ([], [])


def test_auto_map_columns():
    headers = ["Nome Completo", "CPF", "Celular", "CEP", "Endereço", "Bairro", "Cidade", "UF", "Tags"]
    mapping = auto_map_columns(headers)
    assert mapping == {
        "name": "Nome Completo",
        "document": "CPF",
        "mobile_phone": "Celular",
        "zip_code": "CEP",
        "street": "Endereço",
        "neighborhood": "Bairro",
        "city": "Cidade",
        "state": "UF",
        "tags": "Tags",
    }


def test_build_payload_defaults_and_marker():
    reconciliation, _ = reconcile_tokens("APOIADOR", (), KNOWN)
    payload = build_constituent_payload(
        {"street": "rua das flores", "mobile_phone": "(11) 9 8888-7777"},
        reconciliation,
        row_number=7,
        default_city="Campinas",
        default_state="sp",
    )
    assert payload["name"] == "Record #7"
    assert payload["tags"] == [settings.IMPORT_MARKER_TAG, "APOIADOR"]
    assert payload["mobile_phone"] == "11988887777"
    assert payload["address"]["street"] == "RUA DAS FLORES"
    assert payload["address"]["city"] == "CAMPINAS"
    assert payload["address"]["state"] == "SP"
    assert payload["responsible_user_id"] == ""


def test_build_payload_rejects_short_name():
    reconciliation, _ = reconcile_tokens("", (), KNOWN)
    with pytest.raises(ValueError):
        build_constituent_payload({"name": "Jo"}, reconciliation, row_number=1)


# =============================================================================
# Batch import
# =============================================================================

CSV_CONTENT = (
    "Nome;CPF;Celular;CEP;Endereço;Bairro;Cidade;UF;Tags\n"
    "JOÃO SILVA;123.456.789-01;(11) 99999-0000;01310-100;Rua das Flores, 10;Centro;São Paulo;SP;ALINE, APOIADOR\n"
    "Maria Souza;;11988887777;;Av Brasil;Jardim;;;MARCOS / LIDERANÇA\n"
    "Jo;;;;;;;;RONEY\n"
    ";;11977776666;;;;;;aline\n"
)


def _by_name(lifecycle):
    return {c.name: c for c in lifecycle.list_active(EntityKind.CONSTITUENT)}


def test_import_csv_end_to_end(db, audit, lifecycle, admin_user, assessor_user):
    result = import_service.import_constituents_csv(
        lifecycle,
        admin_user,
        CSV_CONTENT.encode("utf-8-sig"),
        default_city="Campinas",
        default_state="SP",
    )

    assert result.created == 3
    assert result.skipped == 1
    assert result.audit_complete is True
    assert [u.name for u in result.provisioned_users] == ["Aline"]

    aline = db.scalar(select(User).where(User.name == "Aline"))
    assert aline.role == Role.ASSESSOR.value
    assert aline.email == f"aline@{settings.IMPORT_EMAIL_DOMAIN}"
    # Failed row never provisions its responsible user
    assert db.scalar(select(User).where(User.name == "Roney")) is None

    people = _by_name(lifecycle)
    joao = people["João Silva"]
    assert joao.document == "12345678901"
    assert joao.tags == [settings.IMPORT_MARKER_TAG, "APOIADOR"]
    assert joao.responsible_user_id == str(aline.id)
    assert joao.address["zip_code"] == "01310100"
    assert joao.address["city"] == "SÃO PAULO"

    maria = people["Maria Souza"]
    assert maria.responsible_user_id == str(assessor_user.id)
    assert maria.tags == [settings.IMPORT_MARKER_TAG, "LIDERANÇA"]
    assert maria.address["city"] == "CAMPINAS"

    unnamed = people["Record #4"]
    assert unnamed.responsible_user_id == str(aline.id)

    team_entries = audit.get_logs_by_module(LogModule.CONTROL_CENTER)
    assert [e.entity_id for e in team_entries] == [str(aline.id)]
    [batch_entry] = audit.get_logs_by_entity("batch")
    assert batch_entry.meta["count"] == 3
    assert batch_entry.meta["skipped"] == 1


def test_import_with_only_invalid_rows_writes_nothing(audit, lifecycle, admin_user):
    result = import_service.import_constituents_csv(lifecycle, admin_user, "Nome\nJo\nAl\n")
    assert (result.created, result.skipped) == (0, 2)
    assert lifecycle.list_active(EntityKind.CONSTITUENT) == []
    assert audit.get_all_logs() == []


class FakeGeoClient:
    def __init__(self, zip_code="13010000"):
        self.zip_code = zip_code
        self.calls = []

    def find_zip_codes(self, state, city, street):
        self.calls.append((state, city, street))
        return [{"zip_code": self.zip_code}]


def test_import_looks_up_missing_zip_codes_with_throttle(lifecycle, admin_user):
    geo = FakeGeoClient()
    sleeps = []
    records = [
        {"name": "Ana Paula", "street": "Rua Barão de Jaguara", "city": "Campinas", "state": "SP"},
        {"name": "Bruno Lima", "street": "Avenida Norte Sul", "city": "Campinas", "state": "SP"},
        {"name": "Carla Dias", "zip_code": "13015-000"},
    ]

    result = import_service.batch_create_constituents(
        lifecycle, admin_user, records, geo_client=geo, sleep=sleeps.append, known_names=KNOWN
    )

    assert result.created == 3
    assert geo.calls == [
        ("SP", "CAMPINAS", "BARÃO DE JAGUARA"),
        ("SP", "CAMPINAS", "NORTE SUL"),
    ]
    assert sleeps == [settings.GEOCODE_THROTTLE_SECONDS]
    people = _by_name(lifecycle)
    assert people["Ana Paula"].address["zip_code"] == "13010000"
    assert people["Carla Dias"].address["zip_code"] == "13015000"


# =============================================================================
# Legacy reconciliation
# =============================================================================

def test_reconcile_legacy_tags(db, audit, lifecycle, admin_user, staff_user):
    loose = lifecycle.create(
        EntityKind.CONSTITUENT,
        constituent_data(name="Pedro Alves", tags=["CARLINHOS", "APOIADOR"]),
        staff_user,
    ).entity
    assigned = lifecycle.create(
        EntityKind.CONSTITUENT,
        constituent_data(
            name="Rita Gomes", tags=["ALINE", "ZONA SUL"], responsible_user_id=str(staff_user.id)
        ),
        staff_user,
    ).entity
    untouched = lifecycle.create(
        EntityKind.CONSTITUENT, constituent_data(name="Lia Rocha", tags=["APOIADOR"]), staff_user
    ).entity

    result = import_service.reconcile_legacy_tags(lifecycle, admin_user, known_names=KNOWN)

    assert result.updated == 2
    assert [u.name for u in result.provisioned_users] == ["Carlinhos"]

    db.refresh(loose)
    db.refresh(assigned)
    carlinhos = result.provisioned_users[0]
    assert loose.tags == ["APOIADOR"]
    assert loose.responsible_user_id == str(carlinhos.id)
    # Already assigned: responsible kept, name signal still leaves the tags
    assert assigned.tags == ["ZONA SUL"]
    assert assigned.responsible_user_id == str(staff_user.id)

    assert [e.action for e in audit.get_logs_by_entity(untouched.id)] == ["CREATE"]
    assert audit.get_logs_by_entity(loose.id)[0].action == "UPDATE"
