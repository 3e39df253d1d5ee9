from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Document(db.Model):
    """
    One flat key-value document in a named collection.

    The entity store is document-shaped: every category, product, supplier and
    order is a JSON body addressed by (collection, doc_id). The row itself has
    no domain columns; validation happens before a write ever reaches here.

    REVISION:
    `revision` is a plain counter bumped on every write. It is not a mapper
    version_id_col: writes to one document are last-write-wins.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc"),
        db.Index("ix_documents_collection", "collection"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    collection = db.Column(db.String(64), nullable=False)
    doc_id = db.Column(db.String(64), nullable=False)

    body = db.Column(db.JSON, nullable=False, default=dict)

    revision = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Document {self.collection}/{self.doc_id} rev={self.revision}>"

    def to_dict(self) -> dict:
        return {
            "collection": self.collection,
            "id": self.doc_id,
            "body": dict(self.body or {}),
            "revision": self.revision,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
