"""Product sheet parsing and product answers"""

import logging
import random
import re
from dataclasses import dataclass, field
from typing import Optional, List
from database.content_store import ContentStore
from utils.error_handler import ContentStoreError
from services.intent_classifiers import fuzzy_product

logger = logging.getLogger(__name__)

PRICE_LINE = re.compile(
    r"(.+?)\s*:\s*(?:Rp\s*)?(\d+(?:\.\d+)*)\s*[kK]\s*(?:/?\s*([^(]+?))?(?:\s*\(([^)]+)\))?\s*$",
    re.I,
)
GUARANTEE_DURATION = re.compile(r"(\d+)\s*(hari|days|bulan|months)", re.I)
DURATION_WORDS = re.compile(r"Bulan|Hari|Tahun")

MULTI_PACKAGE_FOLLOWUPS = [
    "Ingin paket yang mana, Kak? Ada beberapa pilihan durasi nih 😊",
    "Mau pilih yang mana? Bisa disesuaikan sama budget dan kebutuhan 😊",
    "Paket mana yang cocok buat Kak? Kalau bingung bisa tanya-tanya dulu 😊",
    "Dari pilihan di atas, mana yang sesuai budget Kak? 😊",
]
SINGLE_PACKAGE_FOLLOWUPS = [
    "Gimana, Kak? Tertarik sama {product}? 😊",
    "Bagaimana menurut Kak? Harga dan fiturnya sesuai ekspektasi? 😊",
    "Tertarik untuk order {product}? Atau ada yang mau ditanyakan dulu? 😊",
]


@dataclass
class Package:
    duration: str
    price: str
    per_unit: Optional[str] = None
    total: Optional[str] = None


@dataclass
class ProductSheet:
    name: str
    raw: str
    packages: List[Package] = field(default_factory=list)
    garansi: Optional[str] = None
    features: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name[:1].upper() + self.name[1:]


def parse_sheet(raw: str, name: str) -> ProductSheet:
    """Pull packages, guarantee, features and notes out of a product text sheet"""
    sheet = ProductSheet(name=name, raw=raw)

    for line in raw.splitlines():
        clean = re.sub(r"[`*]", "", line).strip()
        if not clean or clean in ("---", "==="):
            continue
        lowered = clean.lower()

        match = PRICE_LINE.match(clean)
        if match:
            duration, price, per_unit, total = match.groups()
            sheet.packages.append(Package(
                duration=duration.strip(),
                price=f"{price}k",
                per_unit=per_unit.strip() if per_unit and per_unit.strip() else None,
                total=total.strip() if total else None,
            ))
            continue

        if "garansi" in lowered or "warranty" in lowered:
            duration = GUARANTEE_DURATION.search(clean)
            if "full garansi" in lowered or not duration:
                sheet.garansi = "Full Garansi"
            else:
                sheet.garansi = f"{duration.group(1)} {duration.group(2)}"
            continue

        if "✅" in clean or "✓" in clean:
            feature = re.sub(r"[✅✓_]", "", clean).strip()
            if feature:
                sheet.features.append(feature)
            continue

        if lowered.startswith("note") or any(w in lowered for w in ("max", "limit", "device")):
            sheet.notes.append(clean)

    return sheet


def specific_info(sheet: ProductSheet, info_type: str) -> Optional[str]:
    if info_type == "garansi":
        if not sheet.garansi:
            return None
        return f"🛡️ Garansi {sheet.display_name}: {sheet.garansi}"
    if info_type == "fitur":
        if not sheet.features:
            return None
        return f"✨ Fitur {sheet.display_name}:\n" + "\n".join(f"✅ {f}" for f in sheet.features)
    if info_type == "harga":
        if not sheet.packages:
            return None
        return "\n".join(
            f"{p.duration}: {p.price}" + (f" ({p.per_unit})" if p.per_unit else "")
            for p in sheet.packages
        )
    return None


def follow_up(sheet: ProductSheet) -> str:
    if len(DURATION_WORDS.findall(sheet.raw)) > 1:
        return random.choice(MULTI_PACKAGE_FOLLOWUPS)
    return random.choice(SINGLE_PACKAGE_FOLLOWUPS).replace("{product}", sheet.display_name)


class ProductCatalog:
    """Answers product questions from the sheets under <data_dir>/produk"""

    def __init__(self, store: ContentStore):
        self.store = store

    def names(self) -> List[str]:
        return self.store.list_product_names()

    def find(self, text: str) -> Optional[str]:
        return fuzzy_product(text, self.names())

    def sheet(self, name: str) -> Optional[ProductSheet]:
        try:
            raw = self.store.load_product_sheet(name)
        except ContentStoreError as e:
            logger.warning(f"⚠️ Cannot load product sheet {name}: {e}")
            return None
        if not raw or not raw.strip():
            return None
        return parse_sheet(raw, name)

    def info(self, name: str, info_type: str = "harga") -> Optional[str]:
        """
        Product answer for one info type.

        Prices and full info return the sheet itself plus a follow-up
        question; guarantee and features return just that part, falling
        back to the whole sheet when the part is missing.
        """
        sheet = self.sheet(name)
        if sheet is None:
            logger.debug(f"No product sheet for {name}")
            return None

        if info_type in ("harga", "full"):
            cleaned = sheet.raw.replace("`", "").replace("**", "*").strip()
            return f"{cleaned}\n\n{follow_up(sheet)}"

        return specific_info(sheet, info_type) or sheet.raw.strip()
