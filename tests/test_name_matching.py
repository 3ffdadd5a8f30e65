"""
Test cases for name normalisation and mention detection
"""

from poligraph.services.name_matching import (
    PartyName,
    PoliticianName,
    build_politician_index,
    find_mentions,
    find_party_mentions,
    generate_slug,
    is_part_of_hyphenated_word,
    normalize_text,
)
from poligraph.models.models import Party


def _politician(id, first_name, last_name):
    full_name = f"{first_name} {last_name}"
    return PoliticianName(
        id=id,
        full_name=full_name,
        first_name=first_name,
        last_name=last_name,
        normalized_full_name=normalize_text(full_name),
        normalized_last_name=normalize_text(last_name),
    )


def _party(id, name, short_name):
    return PartyName(
        id=id,
        name=name,
        short_name=short_name,
        normalized_name=normalize_text(name),
        normalized_short_name=normalize_text(short_name),
    )


def test_normalize_text():
    assert normalize_text("Jean-Luc Mélenchon") == "jean luc melenchon"
    assert normalize_text("  Éric Zemmour ") == "eric zemmour"
    assert normalize_text("l’Assemblée") == "l'assemblee"


def test_find_mentions_full_name():
    index = [_politician("1", "Jean-Luc", "Mélenchon")]
    mentions = find_mentions("Selon jean luc melenchon, la réforme...", index)
    assert [m.entity_id for m in mentions] == ["1"]
    assert mentions[0].matched_name == "Jean-Luc Mélenchon"


def test_find_mentions_last_name_only():
    index = [_politician("1", "Eva", "Joly")]
    # "joly" has fewer than 5 characters
    assert find_mentions("Joly a répondu", index) == []

    index = [_politician("2", "Bruno", "Retailleau")]
    mentions = find_mentions("Le ministre Retailleau a annoncé", index)
    assert [m.entity_id for m in mentions] == ["2"]
    assert mentions[0].matched_name == "Retailleau"


def test_find_mentions_skips_excluded_and_hyphenated_names():
    index = [_politician("1", "Jean", "Martin"), _politician("2", "Roland", "Pivet")]
    assert find_mentions("Un texte signé par Martin et Yaël Braun-Pivet", index) == []


def test_find_mentions_reports_each_politician_once():
    index = [_politician("1", "Marine", "Tondelier")]
    mentions = find_mentions("Marine Tondelier... Tondelier a ajouté", index)
    assert len(mentions) == 1


def test_is_part_of_hyphenated_word():
    assert is_part_of_hyphenated_word("Yaël Braun-Pivet", "pivet")
    assert not is_part_of_hyphenated_word("Le président Pivet", "pivet")


def test_find_party_mentions():
    parties = [
        _party("rn", "Rassemblement national", "RN"),
        _party("lfi", "La France insoumise", "LFI"),
        _party("ps", "Parti socialiste", "PS"),
    ]
    mentions = find_party_mentions("Les députés LFI et le Rassemblement national, le PS s'abstient", parties)
    ids = {m.entity_id for m in mentions}
    assert ids == {"rn", "lfi"}


def test_generate_slug():
    assert generate_slug("Affaire des assistants (FN)") == "affaire-des-assistants-fn"
    assert generate_slug("[À VÉRIFIER] Prise illégale d'intérêts") == "a-verifier-prise-illegale-d-interets"
    assert len(generate_slug("a" * 300)) == 100


def test_build_politician_index_only_published(make_politician, test_db):
    make_politician("Claire", "Dumont")
    make_politician("Paul", "Brouillon", publication_status="DRAFT")
    test_db.add(Party(name="Les Républicains", short_name="LR", slug="les-republicains"))
    test_db.commit()

    index = build_politician_index(test_db)
    assert [p.full_name for p in index] == ["Claire Dumont"]
    assert index[0].normalized_last_name == "dumont"
