from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
    Index,
)

from roomchat.core.db import Base


class StoredRecord(Base):
    """
    One document of a named collection.

    `seq` is the insertion order the store reports ties by; `id` is the
    opaque identifier handed out to callers. `revision` goes up on every
    write and is what conditional writes compare against.
    """

    __tablename__ = "records"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(32), unique=True, index=True, nullable=False)
    collection = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    revision = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )


Index("idx_records_collection_seq", StoredRecord.collection, StoredRecord.seq)
