"""A small document index kept in the relational database.

Documents are stored as JSON under an index name and looked up either all
at once (match-all) or by a case-insensitive literal substring of their JSON
body; ``%`` and ``_`` in a search term carry no wildcard meaning.
Each indexed document is committed on its own, so a rejected document never
takes earlier ones down with it.
"""

import json
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from batchline.db_models import IndexedDocument
from batchline.schemas import IndexDocument, SearchResult, utc_now


logger = logging.getLogger(__name__)


class DocumentIndex:
    def __init__(self, session_factory: sessionmaker[Session], name: str) -> None:
        self.session_factory = session_factory
        self.name = name

    def index(self, document: IndexDocument) -> None:
        body = json.dumps(document.source, sort_keys=True, ensure_ascii=False)
        stmt = select(IndexedDocument).where(
            IndexedDocument.index_name == self.name,
            IndexedDocument.doc_id == document.doc_id,
        )
        with self.session_factory() as db:
            existing = db.execute(stmt).scalar_one_or_none()
            if existing is None:
                db.add(IndexedDocument(index_name=self.name, doc_id=document.doc_id, body=body))
            else:
                existing.body = body
                existing.indexed_at = utc_now()
            db.commit()

    def search(self, term: str | None = None) -> SearchResult:
        stmt = select(IndexedDocument).where(IndexedDocument.index_name == self.name)
        if term:
            stmt = stmt.where(func.lower(IndexedDocument.body).contains(term.lower(), autoescape=True))
        stmt = stmt.order_by(IndexedDocument.id)

        with self.session_factory() as db:
            rows = db.execute(stmt).scalars().all()
            hits = [IndexDocument(doc_id=row.doc_id, source=json.loads(row.body)) for row in rows]
        return SearchResult(total=len(hits), hits=hits)

    def count(self) -> int:
        stmt = select(func.count()).select_from(IndexedDocument).where(IndexedDocument.index_name == self.name)
        with self.session_factory() as db:
            return db.execute(stmt).scalar_one()

    def clear(self) -> int:
        with self.session_factory() as db:
            result = db.execute(delete(IndexedDocument).where(IndexedDocument.index_name == self.name))
            db.commit()
        logger.info("index cleared", extra={"index": self.name, "documents": result.rowcount})
        return result.rowcount
