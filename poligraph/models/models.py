"""
ORM models for the reconciliation and sync subsystems.
Enumerations are stored as plain strings.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Float, ForeignKey, JSON, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from poligraph.models.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class DataSource(str, enum.Enum):
    ASSEMBLEE_NATIONALE = "ASSEMBLEE_NATIONALE"
    SENAT = "SENAT"
    GOUVERNEMENT = "GOUVERNEMENT"
    PARLEMENT_EUROPEEN = "PARLEMENT_EUROPEEN"
    HATVP = "HATVP"
    WIKIDATA = "WIKIDATA"
    NOSDEPUTES = "NOSDEPUTES"
    RNE = "RNE"
    MANUAL = "MANUAL"


class Judgement(str, enum.Enum):
    SAME = "SAME"
    NOT_SAME = "NOT_SAME"
    UNDECIDED = "UNDECIDED"


class MatchMethod(str, enum.Enum):
    EXTERNAL_ID = "EXTERNAL_ID"
    BIRTHDATE = "BIRTHDATE"
    DEPARTMENT = "DEPARTMENT"
    NAME_ONLY = "NAME_ONLY"
    MANUAL = "MANUAL"


class PublicationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class MandateType(str, enum.Enum):
    DEPUTE = "DEPUTE"
    SENATEUR = "SENATEUR"
    DEPUTE_EUROPEEN = "DEPUTE_EUROPEEN"
    PRESIDENT_REPUBLIQUE = "PRESIDENT_REPUBLIQUE"
    PREMIER_MINISTRE = "PREMIER_MINISTRE"
    MINISTRE = "MINISTRE"
    MINISTRE_DELEGUE = "MINISTRE_DELEGUE"
    SECRETAIRE_ETAT = "SECRETAIRE_ETAT"
    PRESIDENT_REGION = "PRESIDENT_REGION"
    PRESIDENT_DEPARTEMENT = "PRESIDENT_DEPARTEMENT"
    CONSEILLER_REGIONAL = "CONSEILLER_REGIONAL"
    CONSEILLER_DEPARTEMENTAL = "CONSEILLER_DEPARTEMENTAL"
    MAIRE = "MAIRE"
    ADJOINT_MAIRE = "ADJOINT_MAIRE"
    CONSEILLER_MUNICIPAL = "CONSEILLER_MUNICIPAL"
    PRESIDENT_PARTI = "PRESIDENT_PARTI"


class AffairStatus(str, enum.Enum):
    ENQUETE_PRELIMINAIRE = "ENQUETE_PRELIMINAIRE"
    INSTRUCTION = "INSTRUCTION"
    MISE_EN_EXAMEN = "MISE_EN_EXAMEN"
    RENVOI_TRIBUNAL = "RENVOI_TRIBUNAL"
    PROCES_EN_COURS = "PROCES_EN_COURS"
    CONDAMNATION_PREMIERE_INSTANCE = "CONDAMNATION_PREMIERE_INSTANCE"
    APPEL_EN_COURS = "APPEL_EN_COURS"
    CONDAMNATION_DEFINITIVE = "CONDAMNATION_DEFINITIVE"
    RELAXE = "RELAXE"
    ACQUITTEMENT = "ACQUITTEMENT"
    NON_LIEU = "NON_LIEU"
    PRESCRIPTION = "PRESCRIPTION"
    CLASSEMENT_SANS_SUITE = "CLASSEMENT_SANS_SUITE"


class AffairCategory(str, enum.Enum):
    CORRUPTION = "CORRUPTION"
    CORRUPTION_PASSIVE = "CORRUPTION_PASSIVE"
    TRAFIC_INFLUENCE = "TRAFIC_INFLUENCE"
    PRISE_ILLEGALE_INTERETS = "PRISE_ILLEGALE_INTERETS"
    FAVORITISME = "FAVORITISME"
    DETOURNEMENT_FONDS_PUBLICS = "DETOURNEMENT_FONDS_PUBLICS"
    FRAUDE_FISCALE = "FRAUDE_FISCALE"
    BLANCHIMENT = "BLANCHIMENT"
    ABUS_BIENS_SOCIAUX = "ABUS_BIENS_SOCIAUX"
    ABUS_CONFIANCE = "ABUS_CONFIANCE"
    EMPLOI_FICTIF = "EMPLOI_FICTIF"
    FINANCEMENT_ILLEGAL_CAMPAGNE = "FINANCEMENT_ILLEGAL_CAMPAGNE"
    FINANCEMENT_ILLEGAL_PARTI = "FINANCEMENT_ILLEGAL_PARTI"
    HARCELEMENT_MORAL = "HARCELEMENT_MORAL"
    HARCELEMENT_SEXUEL = "HARCELEMENT_SEXUEL"
    AGRESSION_SEXUELLE = "AGRESSION_SEXUELLE"
    VIOLENCE = "VIOLENCE"
    MENACE = "MENACE"
    DIFFAMATION = "DIFFAMATION"
    INJURE = "INJURE"
    INCITATION_HAINE = "INCITATION_HAINE"
    FAUX_ET_USAGE_FAUX = "FAUX_ET_USAGE_FAUX"
    RECEL = "RECEL"
    CONFLIT_INTERETS = "CONFLIT_INTERETS"
    AUTRE = "AUTRE"


class Politician(Base):
    __tablename__ = "politicians"

    id = Column(String(36), primary_key=True, default=_uuid)
    slug = Column(String(255), unique=True, nullable=False)
    public_id = Column(String(32), unique=True, nullable=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False, index=True)
    full_name = Column(String(512), nullable=False)
    birth_date = Column(Date, nullable=True)
    death_date = Column(Date, nullable=True)
    publication_status = Column(String(16), default=PublicationStatus.PUBLISHED.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    mandates = relationship("Mandate", back_populates="politician", cascade="all, delete-orphan")
    affairs = relationship("Affair", back_populates="politician", cascade="all, delete-orphan")


class Party(Base):
    __tablename__ = "parties"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    short_name = Column(String(64), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)


class Mandate(Base):
    __tablename__ = "mandates"

    id = Column(String(36), primary_key=True, default=_uuid)
    politician_id = Column(String(36), ForeignKey("politicians.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    title = Column(String(512), nullable=False)
    constituency = Column(String(255), nullable=True)
    department_code = Column(String(3), nullable=True, index=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_current = Column(Boolean, default=True, nullable=False)
    source = Column(String(32), nullable=True)
    external_id = Column(String(255), nullable=True)

    politician = relationship("Politician", back_populates="mandates")


class ExternalId(Base):
    __tablename__ = "external_ids"
    __table_args__ = (UniqueConstraint("source", "external_id", name="uq_external_ids_source_external_id"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    politician_id = Column(String(36), ForeignKey("politicians.id", ondelete="CASCADE"), nullable=True)
    source = Column(String(32), nullable=False)
    external_id = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class IdentityDecision(Base):
    """Append-only log of identity judgements (source record -> politician)."""
    __tablename__ = "identity_decisions"

    id = Column(String(36), primary_key=True, default=_uuid)
    source_type = Column(String(32), nullable=False)
    source_id = Column(String(255), nullable=False)
    politician_id = Column(String(36), ForeignKey("politicians.id", ondelete="CASCADE"), nullable=False)
    judgement = Column(String(16), nullable=False)
    confidence = Column(Float, nullable=False)
    method = Column(String(16), nullable=False)
    evidence = Column(JSON, nullable=True)
    decided_by = Column(String(255), nullable=False)
    decided_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    superseded_by = Column(String(36), ForeignKey("identity_decisions.id"), nullable=True)


class Affair(Base):
    __tablename__ = "affairs"

    id = Column(String(36), primary_key=True, default=_uuid)
    politician_id = Column(String(36), ForeignKey("politicians.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(512), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(Text, default="")
    status = Column(String(32), nullable=False)
    category = Column(String(32), nullable=False)
    involvement = Column(String(32), default="DIRECT")
    ecli = Column(String(128), unique=True, nullable=True)
    pourvoi_number = Column(String(64), nullable=True)
    case_numbers = Column(JSON, default=list)
    court = Column(String(255), nullable=True)
    chamber = Column(String(255), nullable=True)
    facts_date = Column(Date, nullable=True)
    start_date = Column(Date, nullable=True)
    verdict_date = Column(Date, nullable=True)
    publication_status = Column(String(16), default=PublicationStatus.DRAFT.value, nullable=False)
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    politician = relationship("Politician", back_populates="affairs")
    sources = relationship("AffairSource", back_populates="affair", cascade="all, delete-orphan")
    events = relationship("AffairEvent", back_populates="affair", cascade="all, delete-orphan")


class AffairSource(Base):
    __tablename__ = "affair_sources"

    id = Column(String(36), primary_key=True, default=_uuid)
    affair_id = Column(String(36), ForeignKey("affairs.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(2048), nullable=False)
    title = Column(String(512), nullable=False)
    publisher = Column(String(255), nullable=False)
    published_at = Column(Date, nullable=True)
    source_type = Column(String(32), default="PRESSE")

    affair = relationship("Affair", back_populates="sources")


class AffairEvent(Base):
    __tablename__ = "affair_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    affair_id = Column(String(36), ForeignKey("affairs.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    type = Column(String(64), nullable=False)
    title = Column(String(512), nullable=False)

    affair = relationship("Affair", back_populates="events")


class DismissedDuplicate(Base):
    """Affair pairs reviewed as "not a duplicate"; ids stored sorted."""
    __tablename__ = "dismissed_duplicates"
    __table_args__ = (UniqueConstraint("affair_id_a", "affair_id_b", name="uq_dismissed_duplicates_pair"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    affair_id_a = Column(String(36), nullable=False)
    affair_id_b = Column(String(36), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class PressAnalysisRejection(Base):
    __tablename__ = "press_analysis_rejections"

    id = Column(String(36), primary_key=True, default=_uuid)
    article_url = Column(String(2048), nullable=False)
    article_title = Column(String(512), nullable=False)
    article_publisher = Column(String(255), nullable=True)
    article_published_at = Column(Date, nullable=True)
    politician_id = Column(String(36), ForeignKey("politicians.id", ondelete="SET NULL"), nullable=True)
    politician_name = Column(String(255), nullable=False)
    affair_title = Column(String(512), nullable=False)
    category = Column(String(32), nullable=True)
    detected_affair = Column(JSON, nullable=True)
    reason = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=_uuid)
    action = Column(String(32), nullable=False)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(36), nullable=False)
    changes = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
