"""
Learned knowledge: (input, response) pairs with a confidence score.

Entries live in memory for lookup and are persisted one record each in the
ContentStore "knowledge_base" collection. Confidence only ever goes up
through reinforcement; there is no decay and no automatic invalidation.
"""

import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Optional, List, Dict, Any
from config.thresholds import (
    KNOWLEDGE_MATCH, REINFORCE_STEP, SEED_CONFIDENCE, MAX_KNOWLEDGE_ENTRIES,
)
from database.content_store import ContentStore
from services.intent_classifiers import normalize

logger = logging.getLogger(__name__)

COLLECTION = "knowledge_base"

SOURCES = ("faq_seed", "sop_seed", "owner_teaching", "ai_auto_learned", "reinforced")


def clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class KnowledgeEntry:
    input: str
    response: str
    confidence: float
    source: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    verified: bool = False
    usage_count: int = 0
    id: Optional[int] = None

    def to_record(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("id")
        return data

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "KnowledgeEntry":
        return cls(
            id=record.get("id"),
            input=record.get("input", ""),
            response=record.get("response", ""),
            confidence=clamp(record.get("confidence", 0.0)),
            source=record.get("source", "faq_seed"),
            timestamp=record.get("timestamp") or datetime.now().isoformat(),
            verified=bool(record.get("verified", False)),
            usage_count=int(record.get("usage_count", 0)),
        )


@dataclass(frozen=True)
class KnowledgeMatch:
    entry: KnowledgeEntry
    score: float


def similarity(a: str, b: str) -> float:
    """0.6 * Jaccard + 0.4 * overlap over lowercase whitespace tokens"""
    tokens_a = set(normalize(a).split())
    tokens_b = set(normalize(b).split())
    if not tokens_a or not tokens_b:
        return 0.0

    common = tokens_a & tokens_b
    jaccard = len(common) / len(tokens_a | tokens_b)
    overlap = len(common) / max(len(tokens_a), len(tokens_b))
    return 0.6 * jaccard + 0.4 * overlap


class KnowledgeStore:
    """In-memory knowledge list backed by the content store"""

    def __init__(self, store: ContentStore):
        self.store = store
        self._entries: List[KnowledgeEntry] = [
            KnowledgeEntry.from_record(r) for r in store.all_records(COLLECTION)
        ]
        logger.info(f"✓ Knowledge store loaded ({len(self._entries)} entries)")

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[KnowledgeEntry]:
        return list(self._entries)

    def get(self, entry_id: int) -> Optional[KnowledgeEntry]:
        return next((e for e in self._entries if e.id == entry_id), None)

    def lookup(self, text: str, threshold: float = KNOWLEDGE_MATCH) -> Optional[KnowledgeMatch]:
        """Best-scoring entry above threshold, else None"""
        if not text or not self._entries:
            return None

        best, best_score = None, 0.0
        for entry in self._entries:
            score = similarity(text, entry.input)
            if score > best_score:
                best, best_score = entry, score

        if best is not None and best_score > threshold:
            return KnowledgeMatch(entry=best, score=best_score)
        return None

    def reinforce(self, entry_id: int) -> Optional[KnowledgeEntry]:
        """Nudge confidence up by REINFORCE_STEP (never past 1.0) and count the use"""
        entry = self.get(entry_id)
        if entry is None:
            return None

        entry.confidence = clamp(entry.confidence + REINFORCE_STEP)
        entry.usage_count += 1
        self.store.update_record(COLLECTION, entry.id, {
            "confidence": entry.confidence,
            "usage_count": entry.usage_count,
        })
        return entry

    def add(self, input_text: str, response: str, source: str,
            confidence: float, verified: bool = False) -> KnowledgeEntry:
        """
        Add a pair, or update the entry that already has the same input.

        An updated entry takes the new response and the higher of the two
        confidences, and its source becomes "reinforced".
        """
        if source not in SOURCES:
            raise ValueError(f"Unknown knowledge source: {source}")

        key = normalize(input_text)
        existing = next((e for e in self._entries if normalize(e.input) == key), None)
        if existing is not None:
            existing.response = response
            existing.confidence = clamp(max(existing.confidence, confidence))
            existing.verified = existing.verified or verified
            existing.source = "reinforced"
            existing.timestamp = datetime.now().isoformat()
            self.store.update_record(COLLECTION, existing.id, existing.to_record())
            logger.info(f"✓ Knowledge entry {existing.id} updated")
            return existing

        entry = KnowledgeEntry(
            input=input_text.strip(),
            response=response.strip(),
            confidence=clamp(confidence),
            source=source,
            verified=verified,
        )
        entry.id = self.store.add_record(COLLECTION, entry.to_record())["id"]
        self._entries.append(entry)
        logger.info(f"✓ Learned [{source}] \"{entry.input[:40]}\" (confidence {entry.confidence:.2f})")

        if len(self._entries) > MAX_KNOWLEDGE_ENTRIES:
            removed = self.store.trim_collection(COLLECTION, MAX_KNOWLEDGE_ENTRIES)
            self._entries = self._entries[-MAX_KNOWLEDGE_ENTRIES:]
            logger.info(f"🧹 Knowledge store trimmed ({removed} oldest entries)")

        return entry

    def seed_from(self, faq: List[Dict[str, Any]], sop: List[Dict[str, Any]]) -> int:
        """Seed one entry per FAQ keyword and SOP trigger; only when the store is empty"""
        if self._entries:
            return 0

        rows = []
        for records, field_name, source in ((faq, "keyword", "faq_seed"), (sop, "trigger", "sop_seed")):
            for record in records:
                response = record.get("response") or record.get("answer")
                if isinstance(response, list):
                    response = response[0] if response else None
                if not response:
                    continue
                keywords = record.get(field_name) or []
                if isinstance(keywords, str):
                    keywords = keywords.split(",")
                for kw in keywords:
                    if str(kw).strip():
                        rows.append(KnowledgeEntry(
                            input=str(kw).strip(),
                            response=str(response).strip(),
                            confidence=SEED_CONFIDENCE,
                            source=source,
                            verified=True,
                        ))

        for entry in rows:
            entry.id = self.store.add_record(COLLECTION, entry.to_record())["id"]
        self._entries.extend(rows)
        if rows:
            logger.info(f"📥 Seeded knowledge store with {len(rows)} FAQ/SOP entries")
        return len(rows)

    def reset(self):
        self.store.replace_collection(COLLECTION, [])
        self._entries = []
        logger.info("🧹 Knowledge store reset")

    def stats(self) -> Dict[str, Any]:
        by_source = {source: 0 for source in SOURCES}
        for entry in self._entries:
            by_source[entry.source] = by_source.get(entry.source, 0) + 1

        total = len(self._entries)
        return {
            "total": total,
            "verified": sum(1 for e in self._entries if e.verified),
            "by_source": by_source,
            "average_confidence": round(sum(e.confidence for e in self._entries) / total, 3) if total else 0.0,
            "total_usage": sum(e.usage_count for e in self._entries),
        }
