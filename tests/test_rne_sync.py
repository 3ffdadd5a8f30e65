"""
Test cases for the RNE mayors sync
"""

import pytest
from datetime import date
from unittest.mock import MagicMock, patch

from poligraph.models.models import IdentityDecision, Mandate
from poligraph.sync.rne import (
    DEFAULT_MANDATE_START,
    MayorRecord,
    RNESyncService,
    build_insee_code,
    fetch_mayors_csv,
    normalize_name,
    parse_french_date,
    parse_mayors_csv,
)

HEADER = (
    "Code du département;Libellé du département;Code de la commune;Libellé de la commune;"
    "Nom de l'élu;Prénom de l'élu;Code sexe;Date de naissance;Date de début du mandat"
)

SAMPLE_CSV = "\ufeff" + "\n".join([
    HEADER,
    "26;Drôme;26362;Valence;GARNIER-ROUX;SOPHIE;F;30/08/1975;03/07/2020",
    "2A;Corse-du-Sud;004;Ajaccio;DUPONT;Jean-Marie;M;31/02/1960;03/07/2020",
    "01;Ain;01001;L'Abergement-Clémenciat;;Paul;M;01/01/1950;03/07/2020",
    "69;Rhône;;Lyon;MARTIN;Luc;M;01/01/1950;03/07/2020",
])


def test_parse_french_date():
    assert parse_french_date("30/08/1975") == date(1975, 8, 30)
    assert parse_french_date(" 01/01/2100 ") == date(2100, 1, 1)
    assert parse_french_date("31/02/1960") is None
    assert parse_french_date("01/01/1899") is None
    assert parse_french_date("1975-08-30") is None
    assert parse_french_date("aa/bb/cccc") is None
    assert parse_french_date("") is None
    assert parse_french_date(None) is None


def test_build_insee_code():
    assert build_insee_code("01", "01001") == "01001"
    assert build_insee_code("2A", "4") == "2A004"
    assert build_insee_code("971", "5") == "97105"


def test_normalize_name():
    assert normalize_name("GARNIER-ROUX") == "Garnier Roux"
    assert normalize_name("  jean   marie ") == "Jean Marie"


def test_parse_mayors_csv():
    records, errors = parse_mayors_csv(SAMPLE_CSV)

    assert len(records) == 2
    first = records[0]
    assert first.insee_code == "26362"
    assert first.commune == "Valence"
    assert first.full_name == "Sophie Garnier Roux"
    assert first.department_code == "26"
    assert first.birth_date == date(1975, 8, 30)
    assert first.mandate_start == date(2020, 7, 3)

    assert records[1].insee_code == "2A004"
    assert records[1].birth_date is None

    assert errors == [
        "Row 3: missing name",
        "Row 4: missing department or commune code for Luc MARTIN",
    ]


def test_parse_mayors_csv_limit():
    records, _ = parse_mayors_csv(SAMPLE_CSV, limit=1)
    assert [r.insee_code for r in records] == ["26362"]


@patch("poligraph.sync.rne.httpx.get")
def test_fetch_mayors_csv_strips_bom(mock_get):
    response = MagicMock()
    response.content = SAMPLE_CSV.encode("utf-8")
    mock_get.return_value = response

    text = fetch_mayors_csv("https://example.org/maires.csv")
    assert text.startswith("Code du département")
    response.raise_for_status.assert_called_once()


def _record(**overrides):
    data = dict(
        insee_code="26362",
        commune="Valence",
        first_name="Sophie",
        last_name="Garnier",
        department_code="26",
        birth_date=date(1975, 8, 30),
        mandate_start=date(2020, 7, 3),
    )
    data.update(overrides)
    return MayorRecord(**data)


@pytest.mark.asyncio
async def test_sync_creates_mandate_for_confident_match(test_db, make_politician):
    politician = make_politician("Sophie", "Garnier", birth_date=date(1975, 8, 30))
    test_db.add(IdentityDecision(
        source_type="RNE", source_id=_record().source_id, politician_id=politician.id,
        judgement="SAME", confidence=1.0, method="MANUAL", decided_by="admin:alice",
    ))
    test_db.commit()

    service = RNESyncService()
    stats = await service.sync(test_db, [_record()])
    assert (stats.processed, stats.matched, stats.mandates_created) == (1, 1, 1)

    mandate = test_db.query(Mandate).filter(Mandate.type == "MAIRE").one()
    assert mandate.title == "Maire de Valence"
    assert mandate.constituency == "Valence (26362)"
    assert mandate.start_date == date(2020, 7, 3)
    assert mandate.department_code == "26"
    assert mandate.is_current is True
    assert mandate.external_id == "26362"

    stats = await service.sync(test_db, [_record(mandate_start=date(2020, 7, 4))])
    assert stats.mandates_updated == 1
    assert test_db.query(Mandate).filter(Mandate.type == "MAIRE").count() == 1


@pytest.mark.asyncio
async def test_sync_counts_review_and_new(test_db, make_politician):
    make_politician("Sophie", "Garnier", birth_date=date(1975, 8, 30))

    stats = await RNESyncService().sync(
        test_db,
        [_record(), _record(insee_code="75056", first_name="Inconnu", last_name="Personne")],
    )
    assert (stats.review, stats.new, stats.matched) == (1, 1, 0)
    assert test_db.query(Mandate).count() == 0


@pytest.mark.asyncio
async def test_sync_dry_run_writes_nothing(test_db, make_politician):
    make_politician("Sophie", "Garnier", birth_date=date(1975, 8, 30))

    stats = await RNESyncService().sync(test_db, [_record()], dry_run=True)
    assert stats.processed == 1
    assert test_db.query(IdentityDecision).count() == 0


def test_record_source_id_and_start_date():
    record = _record(first_name="Jean-Marie", last_name="Dupré")
    assert record.source_id == "26362:jean marie dupre:1975-08-30"
    assert _record(birth_date=None).source_id == "26362:sophie garnier:"

    assert _record(function_start=date(2021, 1, 5)).start_date == date(2021, 1, 5)
    assert _record().start_date == date(2020, 7, 3)
    assert _record(mandate_start=None).start_date == DEFAULT_MANDATE_START


def _confirm(test_db, politician, record):
    test_db.add(IdentityDecision(
        source_type="RNE", source_id=record.source_id, politician_id=politician.id,
        judgement="SAME", confidence=1.0, method="MANUAL", decided_by="admin:alice",
    ))
    test_db.commit()


@pytest.mark.asyncio
async def test_new_mayor_is_not_attached_to_previous_mayor(test_db, make_politician):
    sophie = make_politician("Sophie", "Garnier", birth_date=date(1975, 8, 30))
    _confirm(test_db, sophie, _record())
    service = RNESyncService()
    await service.sync(test_db, [_record()])

    successor = _record(first_name="Paul", last_name="Durand", birth_date=date(1980, 1, 1))
    stats = await service.sync(test_db, [successor])

    assert (stats.matched, stats.new, stats.mandates_created) == (0, 1, 0)
    assert stats.mandates_closed == 1
    mandate = test_db.query(Mandate).filter(Mandate.politician_id == sophie.id).one()
    assert mandate.is_current is False
    assert mandate.end_date == date.today()


@pytest.mark.asyncio
async def test_known_successor_takes_over_the_commune(test_db, make_politician):
    sophie = make_politician("Sophie", "Garnier", birth_date=date(1975, 8, 30))
    paul = make_politician("Paul", "Durand", birth_date=date(1980, 1, 1))
    successor = _record(first_name="Paul", last_name="Durand", birth_date=date(1980, 1, 1))
    _confirm(test_db, sophie, _record())
    _confirm(test_db, paul, successor)
    service = RNESyncService()
    await service.sync(test_db, [_record()])

    stats = await service.sync(test_db, [successor])
    assert (stats.matched, stats.mandates_created, stats.mandates_closed) == (1, 1, 1)

    current = test_db.query(Mandate).filter(Mandate.is_current.is_(True)).one()
    assert current.politician_id == paul.id


@pytest.mark.asyncio
async def test_sync_closes_mandates_of_communes_missing_from_file(test_db, make_politician):
    sophie = make_politician("Sophie", "Garnier", birth_date=date(1975, 8, 30))
    _confirm(test_db, sophie, _record())
    service = RNESyncService()
    await service.sync(test_db, [_record()])

    other = _record(insee_code="75056", commune="Paris", first_name="Inconnu", last_name="Personne")

    # A partial file (--limit) never closes anything
    stats = await service.sync(test_db, [other], close_stale=False)
    assert stats.mandates_closed == 0

    stats = await service.sync(test_db, [other])
    assert stats.mandates_closed == 1
    mandate = test_db.query(Mandate).filter(Mandate.politician_id == sophie.id).one()
    assert mandate.is_current is False
