"""
Content store for FAQ, SOP, stock, buyers, moderators and learning data.

One row per record with a stable integer id, so admin edits and bot writes
touch only the record they change. Product sheets stay as plain text files
under <data_dir>/produk/ because owners edit them by hand.
"""

import json
import logging
import os
import re
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy import create_engine, Column, Integer, String, DateTime, JSON, func
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from config.settings import DATABASE_URL, DATA_DIR
from utils.retry import retry_db_operation
from utils.error_handler import ContentStoreError

logger = logging.getLogger(__name__)

Base = declarative_base()

COLLECTIONS = (
    "faq", "sop", "stock", "buyers", "moderators", "log_claim", "blacklist",
    "attendance", "knowledge_base", "learning_queue", "unknown_cases", "conversations",
)

# Object-shaped JSON files imported as documents instead of record lists
DOCUMENTS = ("promo", "buyer_stats")

PRODUCT_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9+_-]*$")


class Record(Base):
    """A single JSON record inside a named collection"""
    __tablename__ = "records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(64), index=True, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Document(Base):
    """A named JSON object (promo banner, per-apk buyer stats)"""
    __tablename__ = "documents"

    name = Column(String(64), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def _to_dict(record: Record) -> Dict[str, Any]:
    data = dict(record.data or {})
    data["id"] = record.id
    return data


class ContentStore:
    """Embedded document store backed by SQLAlchemy"""

    def __init__(self, database_url: str = DATABASE_URL, data_dir: str = DATA_DIR):
        self.data_dir = data_dir
        self.product_dir = os.path.join(data_dir, "produk")
        os.makedirs(self.product_dir, exist_ok=True)

        connect_args = {}
        if database_url.startswith("sqlite"):
            # FastAPI runs sync endpoints in a thread pool
            connect_args["check_same_thread"] = False

        try:
            self.engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
            self.SessionLocal = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False
            )
            Base.metadata.create_all(self.engine)
            logger.info(f"✓ Content store ready ({self.engine.url.render_as_string(hide_password=True)})")
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to open content store: {e}")
            raise ContentStoreError("Failed to open content store", {"error": str(e)})

        self.import_legacy_json()

    def get_session(self):
        return self.SessionLocal()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    @retry_db_operation()
    def all_records(self, collection: str) -> List[Dict[str, Any]]:
        """Return every record of a collection ordered by id"""
        session = self.get_session()
        try:
            rows = (
                session.query(Record)
                .filter(Record.collection == collection)
                .order_by(Record.id)
                .all()
            )
            return [_to_dict(row) for row in rows]
        finally:
            session.close()

    @retry_db_operation()
    def get_record(self, collection: str, record_id: int) -> Optional[Dict[str, Any]]:
        session = self.get_session()
        try:
            row = session.get(Record, record_id)
            if not row or row.collection != collection:
                return None
            return _to_dict(row)
        finally:
            session.close()

    def find_records(self, collection: str, **criteria) -> List[Dict[str, Any]]:
        """Records whose fields equal every given criterion"""
        return [
            record for record in self.all_records(collection)
            if all(record.get(key) == value for key, value in criteria.items())
        ]

    @retry_db_operation()
    def add_record(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it with its assigned id"""
        session = self.get_session()
        try:
            payload = {k: v for k, v in data.items() if k != "id"}
            row = Record(collection=collection, data=payload)
            session.add(row)
            session.commit()
            logger.debug(f"Added {collection} record {row.id}")
            return _to_dict(row)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error adding {collection} record: {e}")
            raise
        finally:
            session.close()

    @retry_db_operation()
    def update_record(self, collection: str, record_id: int, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Shallow-merge changes into one record; None when it does not exist"""
        session = self.get_session()
        try:
            row = session.get(Record, record_id)
            if not row or row.collection != collection:
                return None
            merged = dict(row.data or {})
            merged.update({k: v for k, v in changes.items() if k != "id"})
            row.data = merged
            session.commit()
            return _to_dict(row)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error updating {collection} record {record_id}: {e}")
            raise
        finally:
            session.close()

    @retry_db_operation()
    def delete_record(self, collection: str, record_id: int) -> bool:
        session = self.get_session()
        try:
            row = session.get(Record, record_id)
            if not row or row.collection != collection:
                return False
            session.delete(row)
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error deleting {collection} record {record_id}: {e}")
            raise
        finally:
            session.close()

    @retry_db_operation()
    def count_records(self, collection: str) -> int:
        session = self.get_session()
        try:
            return session.query(func.count(Record.id)).filter(Record.collection == collection).scalar() or 0
        finally:
            session.close()

    @retry_db_operation()
    def replace_collection(self, collection: str, rows: List[Dict[str, Any]]) -> int:
        """Drop a collection and insert rows in one transaction"""
        session = self.get_session()
        try:
            session.query(Record).filter(Record.collection == collection).delete()
            for data in rows:
                session.add(Record(collection=collection, data={k: v for k, v in data.items() if k != "id"}))
            session.commit()
            return len(rows)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error replacing {collection}: {e}")
            raise
        finally:
            session.close()

    @retry_db_operation()
    def trim_collection(self, collection: str, keep: int) -> int:
        """Delete the oldest records so at most `keep` remain; returns the number removed"""
        session = self.get_session()
        try:
            ids = [
                row_id for (row_id,) in session.query(Record.id)
                .filter(Record.collection == collection)
                .order_by(Record.id.desc())
                .all()
            ]
            stale = ids[keep:]
            if stale:
                session.query(Record).filter(Record.id.in_(stale)).delete(synchronize_session=False)
                session.commit()
                logger.info(f"🧹 Trimmed {len(stale)} old {collection} records")
            return len(stale)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error trimming {collection}: {e}")
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @retry_db_operation()
    def load_document(self, name: str, default: Any = None) -> Any:
        session = self.get_session()
        try:
            doc = session.get(Document, name)
            if doc is None:
                return default
            return doc.data
        finally:
            session.close()

    @retry_db_operation()
    def save_document(self, name: str, data: Any):
        session = self.get_session()
        try:
            doc = session.get(Document, name)
            if doc is None:
                session.add(Document(name=name, data=data))
            else:
                doc.data = data
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error saving document {name}: {e}")
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Product sheets
    # ------------------------------------------------------------------

    def _product_path(self, name: str) -> str:
        slug = name.strip().lower()
        if not PRODUCT_NAME_PATTERN.match(slug):
            raise ContentStoreError(f"Invalid product name: {name}", {"name": name})
        return os.path.join(self.product_dir, f"{slug}.txt")

    def list_product_names(self) -> List[str]:
        """Sheet names that load_product_sheet can resolve; other files are skipped"""
        try:
            files = os.listdir(self.product_dir)
        except FileNotFoundError:
            return []
        names = []
        for f in files:
            if not f.endswith(".txt"):
                continue
            name = f[:-4]
            if not PRODUCT_NAME_PATTERN.match(name):
                logger.warning(f"⚠️ Skipping product sheet {f}: use a lowercase name without spaces")
                continue
            names.append(name)
        return sorted(names)

    def load_product_sheet(self, name: str) -> Optional[str]:
        path = self._product_path(name)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def save_product_sheet(self, name: str, text: str):
        with open(self._product_path(name), "w", encoding="utf-8") as f:
            f.write(text)
        logger.info(f"✓ Saved product sheet {name}")

    def delete_product_sheet(self, name: str) -> bool:
        path = self._product_path(name)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def import_legacy_json(self):
        """Import <data_dir>/<collection>.json files into empty collections"""
        for collection in COLLECTIONS:
            path = os.path.join(self.data_dir, f"{collection}.json")
            if not os.path.exists(path) or self.count_records(collection) > 0:
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    rows = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning(f"⚠️ Could not read {path}: {e}")
                continue
            if isinstance(rows, list):
                self.replace_collection(collection, [r for r in rows if isinstance(r, dict)])
                logger.info(f"📥 Imported {len(rows)} {collection} records from {path}")

        for name in DOCUMENTS:
            path = os.path.join(self.data_dir, f"{name}.json")
            if not os.path.exists(path) or self.load_document(name) is not None:
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning(f"⚠️ Could not read {path}: {e}")
                continue
            if isinstance(data, dict):
                self.save_document(name, data)
                logger.info(f"📥 Imported document {name} from {path}")

    def export_snapshot(self) -> Dict[str, Any]:
        """Everything in the store as a JSON-serialisable dict"""
        return {
            "collections": {name: self.all_records(name) for name in COLLECTIONS},
            "documents": {name: self.load_document(name) for name in DOCUMENTS},
            "products": {name: self.load_product_sheet(name) for name in self.list_product_names()},
            "exported_at": datetime.utcnow().isoformat(),
        }

    def close(self):
        """Dispose the connection pool"""
        if self.engine:
            self.engine.dispose()
            logger.info("Content store connection pool closed")
