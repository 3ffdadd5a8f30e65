"""
RNE (Répertoire National des Élus) mayors sync.

Downloads the mayors CSV published on data.gouv.fr, resolves every mayor
against existing politicians through the identity resolver and keeps a current
MAIRE mandate for the ones confidently matched. Mandates of communes missing
from the file, or whose mayor changed, are closed.

Usage:
    python -m poligraph.sync.rne
    python -m poligraph.sync.rne --dry-run
    python -m poligraph.sync.rne --limit=100
"""

import argparse
import asyncio
import csv
import io
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple

import httpx
from sqlalchemy.orm import Session

from poligraph import config
from poligraph.models.database import SessionLocal, init_db
from poligraph.models.models import DataSource, Judgement, Mandate, MandateType
from poligraph.services.identity_service import IdentityService, ResolveInput
from poligraph.services.name_matching import normalize_text

logger = logging.getLogger(__name__)

COL_LAST_NAME = "Nom de l'élu"
COL_FIRST_NAME = "Prénom de l'élu"
COL_DEPARTMENT = "Code du département"
COL_COMMUNE_CODE = "Code de la commune"
COL_COMMUNE_LABEL = "Libellé de la commune"
COL_BIRTH_DATE = "Date de naissance"
COL_MANDATE_START = "Date de début du mandat"
COL_FUNCTION_START = "Date de début de la fonction"

# 2020 municipal elections, used when the file gives no start date
DEFAULT_MANDATE_START = date(2020, 5, 18)


@dataclass
class MayorRecord:
    insee_code: str
    commune: str
    first_name: str
    last_name: str
    department_code: str
    birth_date: Optional[date] = None
    mandate_start: Optional[date] = None
    function_start: Optional[date] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def source_id(self) -> str:
        """Per-person key: INSEE code, normalized name and birth date"""
        birth = self.birth_date.isoformat() if self.birth_date else ""
        return f"{self.insee_code}:{normalize_text(self.full_name)}:{birth}"

    @property
    def start_date(self) -> date:
        return self.function_start or self.mandate_start or DEFAULT_MANDATE_START


@dataclass
class RNESyncStats:
    processed: int = 0
    matched: int = 0
    review: int = 0
    new: int = 0
    mandates_created: int = 0
    mandates_updated: int = 0
    mandates_closed: int = 0


def parse_french_date(value: Optional[str]) -> Optional[date]:
    """DD/MM/YYYY -> date, None when empty, malformed or outside 1900-2100"""
    if not value or not value.strip():
        return None
    parts = value.strip().split("/")
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(p) for p in parts)
    except ValueError:
        return None
    if year < 1900 or year > 2100:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def build_insee_code(department_code: str, commune_code: str) -> str:
    department_code = department_code.strip()
    commune_code = commune_code.strip()

    # The mayors file already carries the full 5-character code
    if len(commune_code) == 5:
        return commune_code

    if len(department_code) == 3:
        code = department_code + commune_code.zfill(2)
    else:
        code = department_code + commune_code.zfill(3)

    if len(code) != 5:
        logger.warning("Unexpected INSEE code %r for department %r, commune %r", code, department_code, commune_code)
    return code


def normalize_name(name: str) -> str:
    """"JEAN-PIERRE" -> "Jean Pierre" """
    return " ".join(w[:1].upper() + w[1:].lower() for w in re.split(r"[\s-]+", name.strip()) if w)


def parse_mayors_csv(csv_text: str, limit: Optional[int] = None) -> Tuple[List[MayorRecord], List[str]]:
    """Parse the ';'-delimited RNE file; returns (records, row errors)"""
    reader = csv.DictReader(io.StringIO(csv_text.lstrip("\ufeff")), delimiter=";")
    records: List[MayorRecord] = []
    errors: List[str] = []

    for i, raw in enumerate(reader, start=1):
        if limit is not None and i > limit:
            break
        row: Dict[str, str] = {k.strip(): (v or "").strip() for k, v in raw.items() if k}

        last_name = row.get(COL_LAST_NAME, "")
        first_name = row.get(COL_FIRST_NAME, "")
        department_code = row.get(COL_DEPARTMENT, "")
        commune_code = row.get(COL_COMMUNE_CODE, "")

        if not last_name or not first_name:
            errors.append(f"Row {i}: missing name")
            continue
        if not department_code or not commune_code:
            errors.append(f"Row {i}: missing department or commune code for {first_name} {last_name}")
            continue

        records.append(
            MayorRecord(
                insee_code=build_insee_code(department_code, commune_code),
                commune=row.get(COL_COMMUNE_LABEL, ""),
                first_name=normalize_name(first_name),
                last_name=normalize_name(last_name),
                department_code=department_code,
                birth_date=parse_french_date(row.get(COL_BIRTH_DATE)),
                mandate_start=parse_french_date(row.get(COL_MANDATE_START)),
                function_start=parse_french_date(row.get(COL_FUNCTION_START)),
            )
        )

    return records, errors


def fetch_mayors_csv(url: str = config.RNE_MAIRES_CSV_URL) -> str:
    logger.info("Fetching RNE mayors data from %s", url)
    response = httpx.get(url, timeout=config.HTTP_TIMEOUT_SECONDS, follow_redirects=True)
    response.raise_for_status()
    return response.content.decode("utf-8-sig")


class RNESyncService:
    def __init__(self):
        self.identity_service = IdentityService()

    async def sync(
        self, db: Session, records: List[MayorRecord], dry_run: bool = False, close_stale: bool = True
    ) -> RNESyncStats:
        """Resolve every mayor, refresh MAIRE mandates, then close the ones absent from the file.

        close_stale must be False when records is a partial file (--limit).
        """
        stats = RNESyncStats()

        if dry_run:
            stats.processed = len(records)
            logger.info("[DRY-RUN] Would resolve %d mayors", len(records))
            for record in records[:10]:
                logger.info("[DRY-RUN] %s (%s)", record.full_name, record.insee_code)
            return stats

        seen_communes = set()
        for record in records:
            stats.processed += 1
            seen_communes.add(record.insee_code)
            result = await self.identity_service.resolve(
                db,
                ResolveInput(
                    first_name=record.first_name,
                    last_name=record.last_name,
                    source=DataSource.RNE.value,
                    source_id=record.source_id,
                    birth_date=record.birth_date,
                    department=record.department_code,
                    context={"commune": record.commune, "inseeCode": record.insee_code},
                ),
            )

            if result.decision == Judgement.SAME.value:
                stats.matched += 1
                if self._upsert_mandate(db, result.politician_id, record):
                    stats.mandates_created += 1
                else:
                    stats.mandates_updated += 1
            elif result.decision == Judgement.UNDECIDED.value:
                stats.review += 1
            else:
                stats.new += 1

            mayor_id = result.politician_id if result.decision == Judgement.SAME.value else None
            stats.mandates_closed += self._close_previous_mayors(db, record, mayor_id)

        if close_stale and records:
            stats.mandates_closed += self._close_stale_mandates(db, seen_communes)

        db.commit()
        return stats

    def _current_rne_mandates(self, db: Session):
        return db.query(Mandate).filter(
            Mandate.type == MandateType.MAIRE.value,
            Mandate.source == DataSource.RNE.value,
            Mandate.is_current.is_(True),
        )

    def _upsert_mandate(self, db: Session, politician_id: str, record: MayorRecord) -> bool:
        """Create or refresh the current MAIRE mandate; True when created"""
        mandate = (
            db.query(Mandate)
            .filter(
                Mandate.politician_id == politician_id,
                Mandate.type == MandateType.MAIRE.value,
                Mandate.source == DataSource.RNE.value,
                Mandate.external_id == record.insee_code,
            )
            .first()
        )
        created = mandate is None
        if created:
            mandate = Mandate(
                politician_id=politician_id,
                type=MandateType.MAIRE.value,
                source=DataSource.RNE.value,
                external_id=record.insee_code,
            )
            db.add(mandate)

        mandate.title = f"Maire de {record.commune}" if record.commune else f"Maire ({record.insee_code})"
        mandate.constituency = f"{record.commune} ({record.insee_code})" if record.commune else record.insee_code
        mandate.department_code = record.department_code
        mandate.start_date = record.start_date
        mandate.end_date = None
        mandate.is_current = True
        db.flush()
        return created

    def _close_previous_mayors(self, db: Session, record: MayorRecord, mayor_id: Optional[str]) -> int:
        """One current mayor per commune: close mandates held by anyone but mayor_id"""
        query = self._current_rne_mandates(db).filter(Mandate.external_id == record.insee_code)
        if mayor_id:
            query = query.filter(Mandate.politician_id != mayor_id)
        previous = query.all()
        for mandate in previous:
            self._close(mandate)
        db.flush()
        return len(previous)

    def _close_stale_mandates(self, db: Session, seen_communes) -> int:
        stale = [m for m in self._current_rne_mandates(db).all() if m.external_id not in seen_communes]
        for mandate in stale:
            self._close(mandate)
        db.flush()
        if stale:
            logger.info("Closed %d MAIRE mandates for communes absent from the RNE file", len(stale))
        return len(stale)

    @staticmethod
    def _close(mandate: Mandate) -> None:
        mandate.is_current = False
        mandate.end_date = date.today()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Import mayors from the Répertoire National des Élus")
    parser.add_argument("--dry-run", action="store_true", help="Parse and count without writing to the DB")
    parser.add_argument("--limit", type=int, help="Only process the first N rows")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        csv_text = fetch_mayors_csv()
    except httpx.HTTPError as e:
        logger.error("Could not download the RNE file: %s", e)
        return 1

    records, errors = parse_mayors_csv(csv_text, limit=args.limit)
    logger.info("Parsed %d mayor records (%d rejected rows)", len(records), len(errors))
    for error in errors[:20]:
        logger.warning(error)

    init_db()
    db = SessionLocal()
    try:
        stats = asyncio.run(
            RNESyncService().sync(db, records, dry_run=args.dry_run, close_stale=args.limit is None)
        )
    finally:
        db.close()

    print(f"Processed:        {stats.processed}")
    print(f"Matched (SAME):   {stats.matched}")
    print(f"To review:        {stats.review}")
    print(f"New:              {stats.new}")
    print(f"Mandates created: {stats.mandates_created}")
    print(f"Mandates updated: {stats.mandates_updated}")
    print(f"Mandates closed:  {stats.mandates_closed}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
