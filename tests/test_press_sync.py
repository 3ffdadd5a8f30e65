"""
Test cases for the press detections step
"""

import json

import pytest
from pydantic import ValidationError

from poligraph.models.models import Affair, Party
from poligraph.sync.press import apply_detections, load_detections

DETECTIONS = [
    {
        "article": {
            "url": "https://www.example-presse.fr/article-1",
            "title": "Révélations",
            "publisher": "Mediapart",
            "publishedAt": "2024-03-02",
        },
        "affairs": [
            {
                "politicianName": "Sophie Garnier",
                "title": "Détournement de subventions",
                "category": "DETOURNEMENT_FONDS_PUBLICS",
                "status": "ENQUETE_PRELIMINAIRE",
                "isNewRevelation": True,
            },
            {
                "politicianName": "Sophie Garnier",
                "title": "Simple mention",
                "category": "AUTRE",
                "status": "ENQUETE_PRELIMINAIRE",
                "involvement": "MENTIONED_ONLY",
            },
        ],
    }
]


def test_load_detections(tmp_path):
    path = tmp_path / "detections.json"
    path.write_text(json.dumps(DETECTIONS), encoding="utf-8")

    entries = load_detections(str(path))
    assert entries[0].article.published_at.isoformat() == "2024-03-02"
    assert entries[0].affairs[0].is_new_revelation is True
    assert entries[0].affairs[1].involvement == "MENTIONED_ONLY"


def test_load_detections_rejects_missing_fields(tmp_path):
    path = tmp_path / "detections.json"
    path.write_text(json.dumps([{"article": {"url": "x"}}]), encoding="utf-8")
    with pytest.raises(ValidationError):
        load_detections(str(path))


@pytest.mark.asyncio
async def test_apply_detections(tmp_path, test_db, make_politician):
    make_politician("Sophie", "Garnier")
    path = tmp_path / "detections.json"
    path.write_text(json.dumps(DETECTIONS), encoding="utf-8")

    stats = await apply_detections(test_db, load_detections(str(path)))
    assert stats.processed == 2
    assert stats.actions["create"] == 1
    assert stats.actions["skip"] == 1
    assert test_db.query(Affair).one().title == "[À VÉRIFIER] Détournement de subventions"


@pytest.mark.asyncio
async def test_apply_detections_counts_party_mentions(tmp_path, test_db, make_politician):
    make_politician("Sophie", "Garnier")
    test_db.add(Party(name="Europe Écologie Les Verts", short_name="EELV", slug="eelv"))
    test_db.commit()
    entries = [dict(DETECTIONS[0], article=dict(DETECTIONS[0]["article"], title="Révélations : l'EELV réagit"))]
    path = tmp_path / "detections.json"
    path.write_text(json.dumps(entries), encoding="utf-8")

    stats = await apply_detections(test_db, load_detections(str(path)), dry_run=True)
    assert stats.party_mentions == {"EELV": 1}
    assert test_db.query(Affair).count() == 0
