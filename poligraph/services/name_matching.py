"""
Name normalisation and mention detection for politicians and parties.

Matching works on normalised text (lowercase, accents stripped, dashes turned
into spaces) so that "Jean-Luc Mélenchon" and "jean luc melenchon" compare
equal.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import List, Set

from sqlalchemy.orm import Session

from poligraph.models.models import Party, Politician, PublicationStatus

# Common French words that are also surnames; never matched on their own
EXCLUDED_NAMES: Set[str] = {
    # first names
    "paul", "jean", "pierre", "louis", "charles", "marie", "anne",
    # political / geographic terms
    "fait", "gauche", "droite", "maire", "parti", "france", "etat",
    "nord", "sud", "est", "ouest",
    # adjectives
    "grand", "petit", "blanc", "noir", "rouge", "vert", "bleu", "rose",
    "brun", "long", "court", "haut", "bas",
    # demonyms
    "allemand", "anglais", "francais", "europeen", "americain", "italien", "espagnol",
    # verbs, trades and very common surnames
    "frappe", "prevost", "marchand", "berger", "chevalier", "fontaine", "moulin",
    "richard", "martin", "moreau", "bernard", "thomas", "robert", "simon",
    "michel", "laurent", "daniel", "david",
}

EXCLUDED_PARTY_SHORTNAMES: Set[str] = {"lr", "ps", "udi", "dvd", "dvg"}

_DASHES = re.compile(r"[-–—]")
_QUOTES = re.compile(r"[‘’]")


@dataclass
class PoliticianName:
    id: str
    full_name: str
    first_name: str
    last_name: str
    normalized_full_name: str
    normalized_last_name: str


@dataclass
class PartyName:
    id: str
    name: str
    short_name: str
    normalized_name: str
    normalized_short_name: str


@dataclass
class Mention:
    entity_id: str
    matched_name: str


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize_text(text: str) -> str:
    """Normalize a string for matching (lowercase, no accents, dashes as spaces)"""
    text = strip_accents(text.lower())
    text = _QUOTES.sub("'", text)
    text = _DASHES.sub(" ", text)
    return text.strip()


def _word_regex(word: str) -> "re.Pattern[str]":
    return re.compile(r"\b" + re.escape(word) + r"\b")


def is_part_of_hyphenated_word(original_text: str, normalized_word: str) -> bool:
    """True when the word is glued to another one by a dash in the original text
    (e.g. "franco-allemand", "Braun-Pivet")."""
    lowered = strip_accents(original_text.lower())
    word = re.escape(normalized_word)
    pattern = re.compile(r"\w[-–—]" + word + r"\b|\b" + word + r"[-–—]\w")
    return pattern.search(lowered) is not None


def build_politician_index(db: Session) -> List[PoliticianName]:
    """Index of published politicians for in-memory mention matching"""
    politicians = (
        db.query(Politician)
        .filter(Politician.publication_status == PublicationStatus.PUBLISHED.value)
        .all()
    )
    return [
        PoliticianName(
            id=p.id,
            full_name=p.full_name,
            first_name=p.first_name,
            last_name=p.last_name,
            normalized_full_name=normalize_text(p.full_name),
            normalized_last_name=normalize_text(p.last_name),
        )
        for p in politicians
    ]


def build_party_index(db: Session) -> List[PartyName]:
    return [
        PartyName(
            id=p.id,
            name=p.name,
            short_name=p.short_name,
            normalized_name=normalize_text(p.name),
            normalized_short_name=normalize_text(p.short_name),
        )
        for p in db.query(Party).all()
    ]


def find_mentions(text: str, politicians: List[PoliticianName]) -> List[Mention]:
    """Find politicians mentioned in text.

    Longer full names are tried first. A bare last name only counts when it
    has at least 5 characters, is not a common word and is not part of a
    hyphenated compound.
    """
    normalized = normalize_text(text)
    matches: List[Mention] = []
    seen: Set[str] = set()

    for politician in sorted(politicians, key=lambda p: len(p.normalized_full_name), reverse=True):
        if politician.id in seen:
            continue

        if _word_regex(politician.normalized_full_name).search(normalized):
            matches.append(Mention(politician.id, politician.full_name))
            seen.add(politician.id)
            continue

        last_name = politician.normalized_last_name
        if len(last_name) >= 5 and last_name not in EXCLUDED_NAMES:
            if _word_regex(last_name).search(normalized) and not is_part_of_hyphenated_word(text, last_name):
                matches.append(Mention(politician.id, politician.last_name))
                seen.add(politician.id)

    return matches


def find_party_mentions(text: str, parties: List[PartyName]) -> List[Mention]:
    normalized = normalize_text(text)
    matches: List[Mention] = []
    seen: Set[str] = set()

    for party in sorted(parties, key=lambda p: len(p.normalized_name), reverse=True):
        if party.id in seen:
            continue

        if _word_regex(party.normalized_name).search(normalized):
            matches.append(Mention(party.id, party.name))
            seen.add(party.id)
            continue

        short_name = party.normalized_short_name
        if len(short_name) >= 3 and short_name not in EXCLUDED_PARTY_SHORTNAMES:
            if _word_regex(short_name).search(normalized):
                matches.append(Mention(party.id, party.short_name))
                seen.add(party.id)

    return matches


def generate_slug(text: str, max_length: int = 100) -> str:
    """URL slug: "Affaire des assistants (FN)" -> "affaire-des-assistants-fn" """
    slug = re.sub(r"[^a-z0-9]+", "-", normalize_text(text)).strip("-")
    return slug[:max_length].rstrip("-")
