"""
Test cases for affair duplicate detection, merge and dismissal
"""

import pytest
from datetime import date, datetime

from poligraph.errors import InvalidOperationError, NotFoundError
from poligraph.models.models import Affair, AffairEvent, AffairSource, AuditLog, DismissedDuplicate
from poligraph.services.affair_reconciliation import (
    AffairReconciliationService,
    calculate_pair_score,
    pair_key,
    title_words,
)


def test_pair_key_is_order_independent():
    assert pair_key("b", "a") == pair_key("a", "b") == ("a", "b")


def test_title_words_drop_stopwords_and_accents():
    assert title_words("L'affaire des Emplois fictifs à Évry") == ["affaire", "emplois", "fictifs", "evry"]


def test_calculate_pair_score_identifiers():
    a = Affair(title="A", category="CORRUPTION", ecli="ECLI:1", pourvoi_number="P1")
    b = Affair(title="B", category="AUTRE", ecli="ECLI:1")
    assert calculate_pair_score(a, b) == (100, ["ECLI identique"])

    b = Affair(title="B", category="AUTRE", pourvoi_number="P1")
    assert calculate_pair_score(a, b) == (95, ["Numéro de pourvoi identique"])


def test_calculate_pair_score_combined_signals():
    a = Affair(
        title="Emplois fictifs au conseil départemental",
        category="EMPLOI_FICTIF",
        case_numbers=["123"],
        verdict_date=date(2023, 5, 9),
    )
    b = Affair(
        title="[À VÉRIFIER] Emplois fictifs du conseil départemental",
        category="EMPLOI_FICTIF",
        case_numbers=["123", "456"],
        verdict_date=date(2023, 5, 12),
    )
    score, reasons = calculate_pair_score(a, b)
    # 40 (case number) + 40 (4/5 title words) + 15 (category) + 20 (dates)
    assert score == 100
    assert reasons[0].startswith("Numéro(s) de dossier commun(s) : 123")
    assert "Même catégorie" in reasons
    assert "Dates très proches (< 7 jours)" in reasons


def test_calculate_pair_score_below_threshold():
    a = Affair(title="Favoritisme piscine", category="FAVORITISME")
    b = Affair(title="Diffamation tribune", category="DIFFAMATION")
    assert calculate_pair_score(a, b) is None


@pytest.mark.asyncio
async def test_find_potential_duplicates_skips_dismissed_and_verified(test_db, make_politician, make_affair):
    p = make_politician("Marc", "Lefebvre")
    first = make_affair(p, "Emplois fictifs du conseil départemental", case_numbers=["123"])
    second = make_affair(p, "[À VÉRIFIER] Emplois fictifs du conseil départemental", case_numbers=["123"])
    make_affair(p, "Emplois fictifs du conseil départemental (appel)", verified_at=datetime(2024, 1, 1))

    service = AffairReconciliationService()
    duplicates = await service.find_potential_duplicates(test_db)
    assert len(duplicates) == 1
    assert {duplicates[0].affair_a.id, duplicates[0].affair_b.id} == {first.id, second.id}
    assert duplicates[0].confidence == "HIGH"

    await service.dismiss_duplicate(test_db, second.id, first.id)
    await service.dismiss_duplicate(test_db, first.id, second.id)
    assert test_db.query(DismissedDuplicate).count() == 1
    assert await service.find_potential_duplicates(test_db) == []


@pytest.mark.asyncio
async def test_reconciliation_stats(test_db, make_politician, make_affair):
    p = make_politician("Marc", "Lefebvre")
    make_affair(p, "Affaire Bygmalion")
    make_affair(p, "Affaire Bygmalion", category="FINANCEMENT_ILLEGAL_CAMPAGNE")

    stats = await AffairReconciliationService().get_reconciliation_stats(test_db)
    assert stats.total_unverified == 2
    assert stats.total_duplicates == 1
    assert stats.duplicates_by_certainty == {"CERTAIN": 0, "HIGH": 1, "POSSIBLE": 0}
    assert stats.total_dismissed == 0


@pytest.mark.asyncio
async def test_detect_duplicates_for_politician(test_db, make_politician, make_affair):
    p = make_politician("Marc", "Lefebvre")
    make_affair(p, "Emplois fictifs conseil départemental", category="EMPLOI_FICTIF", case_numbers=["123"])
    make_affair(p, "Emplois fictifs conseil départemental Nord", category="EMPLOI_FICTIF", case_numbers=["123"])
    make_affair(p, "Diffamation tribune", category="DIFFAMATION")

    result = await AffairReconciliationService().detect_duplicates_for_politician(test_db, p.id)
    assert result["total"] == 3
    assert len(result["groups"]) == 1
    group = result["groups"][0]
    assert group.score >= 40
    assert len(group.affairs) == 2
    assert {"id", "title", "sourceCount", "sources"} <= set(group.affairs[0])


@pytest.mark.asyncio
async def test_merge_affairs(test_db, make_politician, make_affair):
    p = make_politician("Marc", "Lefebvre")
    keep = make_affair(p, "Emplois fictifs", source_urls=["https://a.example/1"], case_numbers=["123"])
    remove = make_affair(
        p,
        "[À VÉRIFIER] Emplois fictifs",
        source_urls=["https://a.example/1", "https://b.example/2"],
        ecli="ECLI:FR:CCASS:2023:CR00001",
        court="Cour de cassation",
        case_numbers=["123", "456"],
    )
    test_db.add(AffairEvent(affair_id=remove.id, date=date(2023, 5, 9), type="CONDAMNATION", title="Jugement"))
    test_db.commit()
    keep_id, remove_id = keep.id, remove.id

    result = await AffairReconciliationService().merge_affairs(test_db, keep_id, remove_id)
    assert result.success is True
    assert result.sources_moved == 1
    assert result.events_moved == 1
    assert set(result.identifiers_merged) == {"ecli", "court", "case_numbers"}

    test_db.expire_all()
    kept = test_db.query(Affair).filter(Affair.id == keep_id).one()
    assert test_db.query(Affair).filter(Affair.id == remove_id).first() is None
    assert sorted(s.url for s in kept.sources) == ["https://a.example/1", "https://b.example/2"]
    assert kept.ecli == "ECLI:FR:CCASS:2023:CR00001"
    assert kept.case_numbers == ["123", "456"]
    assert test_db.query(AffairEvent).filter(AffairEvent.affair_id == keep_id).count() == 1
    # the duplicate URL went with the removed affair
    assert test_db.query(AffairSource).count() == 2

    audit = test_db.query(AuditLog).one()
    assert audit.action == "MERGE"
    assert audit.changes["mergedFrom"] == remove_id


@pytest.mark.asyncio
async def test_merge_affairs_errors(test_db, make_politician, make_affair):
    p = make_politician("Marc", "Lefebvre")
    affair = make_affair(p, "Emplois fictifs")
    service = AffairReconciliationService()

    with pytest.raises(InvalidOperationError):
        await service.merge_affairs(test_db, affair.id, affair.id)
    with pytest.raises(NotFoundError):
        await service.merge_affairs(test_db, affair.id, "missing")
