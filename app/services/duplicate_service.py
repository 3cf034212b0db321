"""Cross-source duplicate detection for catalog grants."""

from __future__ import annotations

import re
import uuid
from typing import List, NamedTuple, Optional, Protocol, Set

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.catalog import CatalogGrant
from app.models.duplicates import GrantDuplicate

log = get_logger("duplicate_service")

_TOKEN_RE = re.compile(r"[a-z0-9]+")

TITLE_SIMILARITY_THRESHOLD = 0.7
MAX_FUZZY_MATCHES = 10


class DuplicateCandidate(NamedTuple):
    grant_id: uuid.UUID
    match_score: float
    match_method: str


class CandidateStrategy(Protocol):
    def find_candidates(self, db: Session, grant: CatalogGrant) -> List[DuplicateCandidate]:
        ...


def title_tokens(value: Optional[str]) -> Set[str]:
    if not value:
        return set()
    return set(_TOKEN_RE.findall(value.casefold()))


def title_similarity(left: Optional[str], right: Optional[str]) -> float:
    """Jaccard similarity over lower-cased alphanumeric title tokens."""
    a, b = title_tokens(left), title_tokens(right)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class CatalogSimilarityStrategy:
    """Identical content hash (1.0) plus same-agency fuzzy title matches (0.8)."""

    def find_candidates(self, db: Session, grant: CatalogGrant) -> List[DuplicateCandidate]:
        candidates: List[DuplicateCandidate] = []
        seen: Set[uuid.UUID] = set()

        if grant.content_hash:
            stmt = select(CatalogGrant.id).where(
                CatalogGrant.content_hash == grant.content_hash,
                CatalogGrant.id != grant.id,
                CatalogGrant.is_active.is_(True),
            )
            for grant_id in db.execute(stmt).scalars():
                candidates.append(DuplicateCandidate(grant_id, 1.0, "title_hash"))
                seen.add(grant_id)

        if grant.agency:
            stmt = select(CatalogGrant.id, CatalogGrant.title).where(
                func.lower(CatalogGrant.agency) == grant.agency.lower(),
                CatalogGrant.id != grant.id,
                CatalogGrant.is_active.is_(True),
            )
            scored = []
            for grant_id, title in db.execute(stmt).all():
                if grant_id in seen:
                    continue
                score = title_similarity(grant.title, title)
                if score > TITLE_SIMILARITY_THRESHOLD:
                    scored.append((score, grant_id))
            scored.sort(key=lambda item: item[0], reverse=True)
            for _, grant_id in scored[:MAX_FUZZY_MATCHES]:
                candidates.append(DuplicateCandidate(grant_id, 0.8, "fuzzy_match"))

        return candidates


class DuplicateFinder:
    """Records potential duplicates of one grant; safe to re-run."""

    def __init__(self, db: Session, strategy: Optional[CandidateStrategy] = None):
        self.db = db
        self.strategy = strategy or CatalogSimilarityStrategy()

    def find_duplicates(self, grant_id: uuid.UUID) -> int:
        grant = self.db.get(CatalogGrant, grant_id)
        if grant is None:
            return 0

        candidates = self.strategy.find_candidates(self.db, grant)
        for candidate in candidates:
            self._upsert(grant.id, candidate)
        self.db.commit()

        if candidates:
            log.info(f"Found {len(candidates)} potential duplicate(s) for grant {grant.id}")
        return len(candidates)

    def get_duplicates(self, grant_id: uuid.UUID) -> List[GrantDuplicate]:
        stmt = (
            select(GrantDuplicate)
            .where(GrantDuplicate.primary_grant_id == grant_id)
            .order_by(GrantDuplicate.match_score.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def _upsert(self, primary_id: uuid.UUID, candidate: DuplicateCandidate) -> None:
        insert = pg_insert if self.db.get_bind().dialect.name == "postgresql" else sqlite_insert
        stmt = (
            insert(GrantDuplicate)
            .values(
                id=uuid.uuid4(),
                primary_grant_id=primary_id,
                duplicate_grant_id=candidate.grant_id,
                match_score=candidate.match_score,
                match_method=candidate.match_method,
                is_confirmed=False,
            )
            .on_conflict_do_nothing(index_elements=["primary_grant_id", "duplicate_grant_id"])
        )
        self.db.execute(stmt)
