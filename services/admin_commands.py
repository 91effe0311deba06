"""
WhatsApp admin commands for the owner and active moderators.

    addbuyer [user] [apk] [email] [durasi] [dateGiven] [exp] [invite]
    addclaim [user] [apk] [masalah] [replace|reset]
    addmod [nomor] [nama]        (owner)
    listmod                      (owner)
    delmod [nomor]               (owner)
    adminhelp / adminmenu
"""

import logging
from datetime import datetime
from typing import Optional, List
from config.settings import OWNER_NUMBER
from config.keywords import VALID_APK
from database.content_store import ContentStore
from services.attendance import AttendanceManager
from services.intent_classifiers import (
    sender_number, is_owner, match_admin_command, match_attendance_command,
)
from utils.error_handler import AdminCommandError

logger = logging.getLogger(__name__)

OWNER_ONLY_TEXT = "Perintah ini hanya bisa digunakan oleh owner."

ADDBUYER_FORMAT = (
    "Format: addbuyer [user] [apk] [email] [durasi] [dateGiven] [exp] [invite]\n"
    "Contoh: addbuyer John netflix john@mail.com 30 2025-08-15 2025-09-15 INV123\n\n"
    f"APK tersedia: {', '.join(VALID_APK)}"
)
ADDCLAIM_FORMAT = (
    "Format: addclaim [user] [apk] [masalah] [replace|reset]\n"
    "Contoh: addclaim John netflix \"tidak bisa login\" replace"
)
ADDMOD_FORMAT = "Format: addmod [nomor] [nama]\nContoh: addmod 628123456789 \"Admin John\""
DELMOD_FORMAT = "Format: delmod [nomor]\nContoh: delmod 628123456789"


def _args(text: str, minimum: int, usage: str) -> List[str]:
    args = text.strip().split()
    if len(args) < minimum:
        raise AdminCommandError(usage, {"args": len(args)})
    return args


def _valid_apk(apk: str) -> str:
    normalized = apk.strip().lower()
    if normalized not in VALID_APK:
        raise AdminCommandError(
            f"❌ APK tidak valid!\n\nAPK yang tersedia:\n{', '.join(VALID_APK)}",
            {"apk": apk},
        )
    return normalized


class AdminCommands:
    """Parses and runs admin commands; moderator management is owner-only"""

    def __init__(self, store: ContentStore, attendance: AttendanceManager,
                 owner_number: str = OWNER_NUMBER):
        self.store = store
        self.attendance = attendance
        self.owner_number = owner_number

    def moderator(self, sender: str) -> Optional[dict]:
        number = sender_number(sender)
        for mod in self.store.find_records("moderators", number=number):
            if mod.get("active"):
                return mod
        return None

    def is_moderator(self, sender: str) -> bool:
        return self.moderator(sender) is not None

    def is_admin(self, sender: str) -> bool:
        return is_owner(sender, self.owner_number) or self.is_moderator(sender)

    def accepts(self, text: str, sender: str) -> bool:
        """Admin command from the owner or a moderator, or attendance from a moderator"""
        if match_admin_command(text) and self.is_admin(sender):
            return True
        return bool(match_attendance_command(text)) and self.is_moderator(sender)

    def handle(self, text: str, sender: str) -> Optional[str]:
        command = match_admin_command(text)
        if command is None:
            action = match_attendance_command(text)
            mod = self.moderator(sender)
            if action and mod:
                return self.attendance.handle(action, sender, name=mod.get("name"))
            return None

        if not self.is_admin(sender):
            return None

        owner = is_owner(sender, self.owner_number)
        try:
            if command == "addbuyer":
                return self.add_buyer(text)
            if command == "addclaim":
                return self.add_claim(text, sender)
            if command in ("adminhelp", "adminmenu"):
                return self.help_text(owner)
            if not owner:
                return OWNER_ONLY_TEXT
            if command == "addmod":
                return self.add_moderator(text, sender)
            if command == "listmod":
                return self.list_moderators()
            if command == "delmod":
                return self.delete_moderator(text)
        except AdminCommandError as e:
            logger.info(f"Admin command rejected: {command} {e.details}")
            return e.message
        return None

    def add_buyer(self, text: str) -> str:
        _, user, apk, email, durasi, date_given, exp, invite = _args(text, 8, ADDBUYER_FORMAT)[:8]
        apk = _valid_apk(apk)
        transaction = {
            "apk": apk,
            "email": email,
            "durasi": f"{durasi} hari",
            "dateGiven": date_given,
            "exp": exp,
            "invite": invite,
        }

        existing = self.store.find_records("buyers", user=user)
        if existing:
            buyer = existing[0]
            stats = dict(buyer.get("statistik") or {})
            entry = dict(stats.get(apk) or {"total": 0, "rincian": {}})
            rincian = dict(entry.get("rincian") or {})
            rincian[transaction["durasi"]] = rincian.get(transaction["durasi"], 0) + 1
            stats[apk] = {"total": entry.get("total", 0) + 1, "rincian": rincian}
            self.store.update_record("buyers", buyer["id"], {
                "statistik": stats,
                "data": list(buyer.get("data") or []) + [transaction],
            })
        else:
            self.store.add_record("buyers", {
                "user": user,
                "statistik": {apk: {"total": 1, "rincian": {transaction["durasi"]: 1}}},
                "data": [transaction],
            })
        logger.info(f"✓ Buyer recorded: {user} / {apk}")

        return (
            "✅ *Buyer berhasil ditambahkan!*\n\n"
            f"👤 *User:* {user}\n"
            f"📱 *APK:* {apk}\n"
            f"📧 *Email:* {email}\n"
            f"⏰ *Durasi:* {transaction['durasi']}\n"
            f"📅 *Diberikan:* {date_given}\n"
            f"⚠️ *Expired:* {exp}\n"
            f"🎫 *Invite:* {invite}"
        )

    def add_claim(self, text: str, sender: str) -> str:
        args = _args(text, 5, ADDCLAIM_FORMAT)
        user, apk, rest = args[1], args[2], args[3:]
        claim_type = rest[-1].lower()
        if claim_type not in ("replace", "reset"):
            raise AdminCommandError("❌ Type claim harus 'replace' atau 'reset'!", {"type": claim_type})
        apk = _valid_apk(apk)
        problem = " ".join(rest[:-1]).replace('"', "")
        today = datetime.now().strftime("%Y-%m-%d")

        self.store.add_record("log_claim", {
            "user": user,
            "apk": apk,
            "masalah": problem,
            "tanggal": today,
            "type": claim_type,
            "status": "PENDING" if claim_type == "replace" else None,
            "done": False if claim_type == "reset" else None,
            "admin": sender_number(sender),
        })

        return (
            f"✅ *Claim {claim_type} berhasil ditambahkan!*\n\n"
            f"👤 *User:* {user}\n"
            f"📱 *APK:* {apk}\n"
            f"❗ *Masalah:* {problem}\n"
            f"📅 *Tanggal:* {today}\n"
            f"🔄 *Type:* {claim_type.upper()}"
        )

    def add_moderator(self, text: str, sender: str) -> str:
        args = _args(text, 3, ADDMOD_FORMAT)
        number = sender_number(args[1])
        name = " ".join(args[2:]).replace('"', "")
        if self.store.find_records("moderators", number=number):
            return f"❌ Moderator dengan nomor {number} sudah ada!"

        now = datetime.now()
        self.store.add_record("moderators", {
            "number": number,
            "name": name,
            "addedBy": sender_number(sender),
            "addedDate": now.isoformat(),
            "active": True,
        })
        logger.info(f"✓ Moderator added: {name} ({number})")
        return (
            "✅ Moderator berhasil ditambahkan:\n"
            f"📱 Nomor: {number}\n"
            f"👤 Nama: {name}\n"
            f"📅 Tanggal: {now.strftime('%d/%m/%Y')}"
        )

    def list_moderators(self) -> str:
        moderators = self.store.all_records("moderators")
        if not moderators:
            return "📋 *DAFTAR MODERATOR*\n\nBelum ada moderator yang terdaftar."

        lines = ["📋 *DAFTAR MODERATOR*", ""]
        for index, mod in enumerate(moderators, 1):
            added = (mod.get("addedDate") or "")[:10]
            lines += [
                f"{index}. *{mod.get('name', '-')}*",
                f"   📱 {mod.get('number', '-')}",
                f"   {'🟢 Aktif' if mod.get('active') else '🔴 Nonaktif'}",
                f"   📅 {added}",
                "",
            ]
        lines.append(f"Total: {len(moderators)} moderator")
        return "\n".join(lines)

    def delete_moderator(self, text: str) -> str:
        number = sender_number(_args(text, 2, DELMOD_FORMAT)[1])
        found = self.store.find_records("moderators", number=number)
        if not found:
            return f"❌ Moderator dengan nomor {number} tidak ditemukan!"

        removed = found[0]
        self.store.delete_record("moderators", removed["id"])
        return f"✅ Moderator berhasil dihapus:\n👤 {removed.get('name')}\n📱 {removed.get('number')}"

    @staticmethod
    def help_text(owner: bool) -> str:
        lines = [
            "🔧 *ADMIN COMMANDS*",
            "",
            "📊 *Data Management:*",
            "• addbuyer [user] [apk] [email] [durasi] [dateGiven] [exp] [invite]",
            "• addclaim [user] [apk] [masalah] [replace/reset]",
            "",
        ]
        if owner:
            lines += [
                "👥 *User Management:*",
                "• addmod [nomor] [nama]",
                "• listmod",
                "• delmod [nomor]",
                "",
            ]
        else:
            lines += [
                "🕐 *Absensi:*",
                "• mulai / istirahat / masuk / close",
                "• status absen",
                "",
            ]
        lines += [
            "🧠 *Learning Commands:*",
            "• learning stats - Statistik pembelajaran bot",
            "• learning help - Cara mengajari bot",
            "",
            "💡 *Contoh:*",
            "• addbuyer John netflix john@mail.com 30 2025-08-15 2025-09-15 INV123",
            "• addclaim Jane netflix \"error login\" replace",
        ]
        if owner:
            lines.append("• addmod 628123456789 \"Admin Sarah\"")
        lines += ["", "📱 *APK yang tersedia:*", ", ".join(VALID_APK)]
        return "\n".join(lines)
