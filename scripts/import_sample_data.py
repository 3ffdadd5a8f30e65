#!/usr/bin/env python3
"""
Sample data import script for Poligraph.
Seeds a few politicians, mandates, affairs and an identity decision awaiting
review, so the API and the reconciliation endpoints have something to show.
"""

import asyncio
from datetime import date

from poligraph.models.database import SessionLocal, init_db
from poligraph.models.models import (
    Affair, AffairSource, DataSource, ExternalId, Mandate, Politician, PublicationStatus,
)
from poligraph.services.identity_service import IdentityService, ResolveInput
from poligraph.services.name_matching import generate_slug
from poligraph.sync.rne import MayorRecord

# Sample data
SAMPLE_POLITICIANS = [
    {
        "first_name": "Claire",
        "last_name": "Dumont",
        "birth_date": date(1968, 4, 12),
        "public_id": "PG-0001",
        "mandates": [
            {"type": "DEPUTE", "title": "Députée de la 3e circonscription du Rhône",
             "constituency": "Rhône (3)", "department_code": "69", "start_date": date(2022, 6, 22)},
        ],
    },
    {
        "first_name": "Marc",
        "last_name": "Lefebvre",
        "birth_date": date(1959, 11, 3),
        "public_id": "PG-0002",
        "mandates": [
            {"type": "SENATEUR", "title": "Sénateur du Nord", "constituency": "Nord",
             "department_code": "59", "start_date": date(2020, 10, 1)},
        ],
    },
    {
        "first_name": "Marc",
        "last_name": "Lefebvre",
        "birth_date": date(1981, 2, 17),
        "public_id": "PG-0003",
        "mandates": [
            {"type": "CONSEILLER_REGIONAL", "title": "Conseiller régional de Bretagne",
             "constituency": "Bretagne", "department_code": "35", "start_date": date(2021, 7, 2)},
        ],
    },
    {
        "first_name": "Sophie",
        "last_name": "Garnier-Roux",
        "birth_date": date(1975, 8, 30),
        "public_id": "PG-0004",
        "mandates": [
            {"type": "MAIRE", "title": "Maire de Valence", "constituency": "Valence",
             "department_code": "26", "start_date": date(2020, 7, 3)},
        ],
    },
]

SAMPLE_AFFAIRS = [
    {
        "politician": "PG-0002",
        "title": "Affaire des emplois fictifs du conseil départemental",
        "status": "CONDAMNATION_PREMIERE_INSTANCE",
        "category": "EMPLOI_FICTIF",
        "case_numbers": ["19045000123"],
        "verdict_date": date(2023, 5, 9),
        "publication_status": "PUBLISHED",
        "source": ("https://www.example-presse.fr/emplois-fictifs-nord", "Le Quotidien du Nord", "PRESSE"),
    },
    {
        "politician": "PG-0002",
        "title": "[À VÉRIFIER] Emplois fictifs du conseil départemental",
        "status": "APPEL_EN_COURS",
        "category": "EMPLOI_FICTIF",
        "case_numbers": ["19045000123"],
        "verdict_date": date(2023, 5, 20),
        "publication_status": "DRAFT",
        "source": ("https://www.example-presse.fr/appel-emplois-fictifs", "Le Quotidien du Nord", "PRESSE"),
    },
    {
        "politician": "PG-0004",
        "title": "Favoritisme dans l'attribution du marché de la piscine",
        "status": "ENQUETE_PRELIMINAIRE",
        "category": "FAVORITISME",
        "case_numbers": [],
        "verdict_date": None,
        "publication_status": "PUBLISHED",
        "source": ("https://www.example-presse.fr/valence-piscine", "Le Dauphiné", "PRESSE"),
    },
]


class SampleDataImporter:
    def __init__(self):
        self.SessionLocal = SessionLocal
        self.identity_service = IdentityService()

        # Track created entities
        self.created_politicians = {}
        self.created_affairs = []

    async def import_politicians(self):
        """Import sample politicians and their mandates"""
        print("📋 Importing politicians...")

        db = self.SessionLocal()
        try:
            for data in SAMPLE_POLITICIANS:
                full_name = f"{data['first_name']} {data['last_name']}"
                politician = Politician(
                    slug=generate_slug(f"{full_name} {data['public_id']}"),
                    public_id=data["public_id"],
                    first_name=data["first_name"],
                    last_name=data["last_name"],
                    full_name=full_name,
                    birth_date=data["birth_date"],
                    publication_status=PublicationStatus.PUBLISHED.value,
                )
                for mandate in data["mandates"]:
                    politician.mandates.append(Mandate(is_current=True, source=DataSource.MANUAL.value, **mandate))
                db.add(politician)
                db.flush()
                db.add(ExternalId(source=DataSource.MANUAL.value, external_id=data["public_id"], politician_id=politician.id))
                self.created_politicians[data["public_id"]] = politician.id
                print(f"   ✅ Created politician: {full_name}")
            db.commit()
        finally:
            db.close()

    async def import_affairs(self):
        """Import sample affairs, including a likely duplicate pair"""
        print("⚖️  Importing affairs...")

        db = self.SessionLocal()
        try:
            for data in SAMPLE_AFFAIRS:
                url, publisher, source_type = data["source"]
                affair = Affair(
                    politician_id=self.created_politicians[data["politician"]],
                    title=data["title"],
                    slug=generate_slug(f"{data['title']} {data['politician']}"),
                    status=data["status"],
                    category=data["category"],
                    case_numbers=data["case_numbers"],
                    verdict_date=data["verdict_date"],
                    publication_status=data["publication_status"],
                )
                affair.sources.append(AffairSource(url=url, title=data["title"], publisher=publisher, source_type=source_type))
                db.add(affair)
                self.created_affairs.append(affair)
                print(f"   ✅ Created affair: {data['title']}")
            db.commit()
        finally:
            db.close()

    async def create_review_decision(self):
        """A birth-date match alone stays below auto-match and lands in the review queue"""
        print("🔎 Resolving an ambiguous RNE record...")

        mayor = MayorRecord(
            insee_code="26362",
            commune="Valence",
            first_name="Sophie",
            last_name="Garnier-Roux",
            department_code="26",
            birth_date=date(1975, 8, 30),
        )

        db = self.SessionLocal()
        try:
            result = await self.identity_service.resolve(
                db,
                ResolveInput(
                    first_name=mayor.first_name,
                    last_name=mayor.last_name,
                    source=DataSource.RNE.value,
                    source_id=mayor.source_id,
                    department=mayor.department_code,
                    birth_date=mayor.birth_date,
                ),
            )
            db.commit()
            print(f"   ✅ Decision: {result.decision} ({result.method}, {result.confidence:.2f})")
        finally:
            db.close()

    async def run_import(self):
        """Run the complete import process"""
        print("🚀 Starting sample data import...")

        init_db()
        await self.import_politicians()
        await self.import_affairs()
        await self.create_review_decision()

        print("\n✅ Sample data import completed successfully!")
        print(f"   📊 Imported:")
        print(f"      • {len(self.created_politicians)} politicians")
        print(f"      • {len(self.created_affairs)} affairs")

if __name__ == "__main__":
    importer = SampleDataImporter()
    asyncio.run(importer.run_import())
