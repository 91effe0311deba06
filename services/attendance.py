"""
Moderator attendance over WhatsApp.

Moderators clock in, take breaks and clock out with plain words
("mulai", "istirahat", "masuk", "close"). One record per moderator per
day in the "attendance" collection; the owner reads them from the admin
API.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Callable, Dict, Any
from database.content_store import ContentStore
from services.intent_classifiers import sender_number

logger = logging.getLogger(__name__)

COLLECTION = "attendance"

# Asia/Jakarta has no DST
WIB = timezone(timedelta(hours=7), "WIB")

STATUS_STARTED = "mulai"
STATUS_BREAK = "istirahat"
STATUS_BACK = "masuk"
STATUS_CLOSED = "close"

STATUS_EMOJI = {
    STATUS_STARTED: "💪",
    STATUS_BREAK: "🍽️",
    STATUS_BACK: "💪",
    STATUS_CLOSED: "🏁",
}


def _minutes_between(start: str, end: str) -> int:
    fmt = "%H:%M:%S"
    delta = datetime.strptime(end, fmt) - datetime.strptime(start, fmt)
    return max(0, int(delta.total_seconds() // 60))


class AttendanceManager:
    """Clock-in, break, back and clock-out for moderators"""

    def __init__(self, store: ContentStore, now: Callable[[], datetime] = None):
        self.store = store
        self._now = now or (lambda: datetime.now(WIB))

    def handle(self, action: str, sender: str, name: Optional[str] = None) -> Optional[str]:
        number = sender_number(sender)
        handlers = {
            "start": self.clock_in,
            "break": self.take_break,
            "back": self.back_from_break,
            "close": self.clock_out,
            "status": self.status,
        }
        handler = handlers.get(action)
        if handler is None:
            return None
        if action == "start":
            return handler(number, name or number)
        return handler(number)

    def _open_record(self, number: str, day: str) -> Optional[Dict[str, Any]]:
        for record in self.store.find_records(COLLECTION, admin_number=number, date=day):
            if not record.get("clock_out"):
                return record
        return None

    def clock_in(self, number: str, name: str) -> str:
        now = self._now()
        day, time = now.strftime("%Y-%m-%d"), now.strftime("%H:%M:%S")

        existing = self._open_record(number, day)
        if existing:
            return (
                "⚠️ Kak sudah absen masuk hari ini!\n\n"
                f"🕐 Masuk: {existing['clock_in']}\n"
                f"📊 Status: {existing['status']}\n\n"
                "Ketik 'status absen' untuk lihat detail"
            )

        self.store.add_record(COLLECTION, {
            "admin_number": number,
            "admin_name": name,
            "date": day,
            "clock_in": time,
            "clock_out": None,
            "breaks": [],
            "status": STATUS_STARTED,
            "total_work_minutes": 0,
            "total_break_minutes": 0,
        })
        logger.info(f"🕐 {name} clocked in at {time}")

        return (
            "✅ *ABSEN MASUK BERHASIL*\n\n"
            f"👤 *Admin:* {name}\n"
            f"📅 *Tanggal:* {now.strftime('%d/%m/%Y')}\n"
            f"🕐 *Jam Masuk:* {time} WIB\n"
            "📊 *Status:* Aktif\n\n"
            "Selamat bekerja! Semangat hari ini ya! 💪\n\n"
            "💡 *Commands:*\n"
            "• istirahat - Mulai break\n"
            "• close - Selesai kerja"
        )

    def take_break(self, number: str) -> str:
        now = self._now()
        day, time = now.strftime("%Y-%m-%d"), now.strftime("%H:%M:%S")

        record = self._open_record(number, day)
        if not record:
            return "❌ Belum absen masuk hari ini!\n\nKetik 'mulai' untuk absen masuk dulu ya"
        if record["status"] == STATUS_BREAK:
            started = record["breaks"][-1]["start"] if record["breaks"] else "-"
            return (
                "⚠️ Sudah dalam status istirahat!\n\n"
                f"🕐 Mulai istirahat: {started}\n"
                "Ketik 'masuk' untuk kembali kerja"
            )

        breaks = list(record.get("breaks") or [])
        breaks.append({"start": time, "end": None, "duration": 0})
        self.store.update_record(COLLECTION, record["id"], {"breaks": breaks, "status": STATUS_BREAK})

        return (
            "🍽️ *MULAI ISTIRAHAT*\n\n"
            f"👤 *Admin:* {record['admin_name']}\n"
            f"🕐 *Jam Istirahat:* {time} WIB\n"
            "📊 *Status:* Istirahat\n\n"
            "Selamat istirahat! Jangan lupa makan ya! 😊\n\n"
            "Ketik 'masuk' kalau sudah selesai istirahat"
        )

    def back_from_break(self, number: str) -> str:
        now = self._now()
        day, time = now.strftime("%Y-%m-%d"), now.strftime("%H:%M:%S")

        record = self._open_record(number, day)
        if not record:
            return "❌ Belum absen masuk hari ini!"
        if record["status"] != STATUS_BREAK:
            return f"⚠️ Tidak dalam status istirahat!\n\nStatus saat ini: {record['status']}"

        breaks = list(record.get("breaks") or [])
        duration = 0
        if breaks and not breaks[-1].get("end"):
            duration = _minutes_between(breaks[-1]["start"], time)
            breaks[-1] = {**breaks[-1], "end": time, "duration": duration}
        self.store.update_record(COLLECTION, record["id"], {"breaks": breaks, "status": STATUS_BACK})

        return (
            "💪 *KEMBALI KERJA*\n\n"
            f"👤 *Admin:* {record['admin_name']}\n"
            f"🕐 *Selesai Istirahat:* {time} WIB\n"
            f"⏱️ *Durasi Istirahat:* {duration} menit\n"
            "📊 *Status:* Aktif Kembali\n\n"
            "Welcome back! Semangat lanjut kerja ya! 🚀"
        )

    def clock_out(self, number: str) -> str:
        now = self._now()
        day, time = now.strftime("%Y-%m-%d"), now.strftime("%H:%M:%S")

        record = self._open_record(number, day)
        if not record:
            return "❌ Belum absen masuk hari ini atau sudah close!"

        breaks = list(record.get("breaks") or [])
        if breaks and not breaks[-1].get("end"):
            breaks[-1] = {**breaks[-1], "end": time, "duration": _minutes_between(breaks[-1]["start"], time)}

        total_break = sum(b.get("duration") or 0 for b in breaks)
        effective = max(0, _minutes_between(record["clock_in"], time) - total_break)

        self.store.update_record(COLLECTION, record["id"], {
            "breaks": breaks,
            "clock_out": time,
            "status": STATUS_CLOSED,
            "total_work_minutes": effective,
            "total_break_minutes": total_break,
        })
        logger.info(f"🏁 {record['admin_name']} clocked out at {time} ({effective} min)")

        return (
            "🏁 *SELESAI KERJA*\n\n"
            f"👤 *Admin:* {record['admin_name']}\n"
            f"📅 *Tanggal:* {now.strftime('%d/%m/%Y')}\n"
            f"🕐 *Jam Masuk:* {record['clock_in']} WIB\n"
            f"🕐 *Jam Keluar:* {time} WIB\n"
            f"⏱️ *Total Kerja:* {effective // 60}j {effective % 60}m\n"
            f"🍽️ *Total Istirahat:* {total_break} menit\n"
            "📊 *Status:* Selesai\n\n"
            "Terima kasih atas kerja kerasnya hari ini! 🙏\n"
            "Istirahat yang cukup ya! 😊"
        )

    def status(self, number: str) -> str:
        now = self._now()
        day = now.strftime("%Y-%m-%d")

        records = self.store.find_records(COLLECTION, admin_number=number, date=day)
        if not records:
            return (
                "📋 *STATUS ABSENSI*\n\n"
                f"📅 *Tanggal:* {now.strftime('%d/%m/%Y')}\n"
                "📊 *Status:* Belum absen masuk\n\n"
                "Ketik 'mulai' untuk absen masuk ya!"
            )

        record = records[-1]
        breaks = record.get("breaks") or []
        finished_breaks = sum(b.get("duration") or 0 for b in breaks if b.get("end"))

        if record.get("clock_out"):
            worked = record.get("total_work_minutes") or 0
        else:
            current = now.strftime("%H:%M:%S")
            worked = _minutes_between(record["clock_in"], current) - finished_breaks
            if breaks and not breaks[-1].get("end"):
                worked -= _minutes_between(breaks[-1]["start"], current)
            worked = max(0, worked)

        lines = [
            "📋 *STATUS ABSENSI HARI INI*",
            "",
            f"👤 *Admin:* {record['admin_name']}",
            f"📅 *Tanggal:* {now.strftime('%d/%m/%Y')}",
            f"🕐 *Jam Masuk:* {record['clock_in']} WIB",
        ]
        if record.get("clock_out"):
            lines.append(f"🕐 *Jam Keluar:* {record['clock_out']} WIB")
        lines += [
            f"📊 *Status:* {STATUS_EMOJI.get(record['status'], '')} {record['status'].upper()}",
            f"⏱️ *Kerja Efektif:* {worked // 60}j {worked % 60}m",
            f"🍽️ *Total Break:* {finished_breaks} menit",
            "",
        ]
        if record["status"] == STATUS_BREAK:
            lines.append('Sedang istirahat. Ketik "masuk" untuk kembali kerja')
        elif record["status"] == STATUS_CLOSED:
            lines.append("Sudah selesai kerja hari ini")
        else:
            lines.append('Sedang bekerja. Ketik "istirahat" untuk break atau "close" untuk selesai')
        return "\n".join(lines)

    def today(self) -> list:
        return self.store.find_records(COLLECTION, date=self._now().strftime("%Y-%m-%d"))
