"""Keyword tables used by the intent classifiers and command router"""

# Products (order matters: first match wins for ties)
PRODUCT_NAMES = [
    "netflix", "spotify", "disney", "youtube", "canva", "capcut", "chatgpt",
    "prime", "hbo", "iqiyi", "viu", "wetv", "vision+", "vidio", "bstation",
    "alightmotion", "remini", "picsart",
]

# Products actually sold (spotify and canva are asked about but not stocked)
AVAILABLE_PRODUCTS = [
    "netflix", "disney", "youtube", "iqiyi", "viu", "wetv", "vision+", "vidio",
    "prime", "hbo", "bstation", "alightmotion", "chatgpt", "capcut",
]

PRODUCT_KEYWORDS = [
    "harga", "price", "berapa", "biaya", "paket", "garansi", "warranty",
    "info", "detail", "spek", "fitur", "ada", "tersedia", "ready", "stock",
]

GENERAL_PATTERNS = ["promo", "diskon", "error", "masalah", "gagal", "tidak bisa"]

CONFUSING_PRODUCT_PAIRS = [
    ("canva", "capcut"),
    ("netflix", "wetv"),
    ("spotify", "disney"),
    ("youtube", "prime"),
]

VALID_APK = [
    "netflix", "spotify", "canva", "capcut", "disney", "youtube", "chatgpt",
    "prime", "hbo", "iqiyi", "viu", "wetv", "vision+", "vidio", "bstation",
    "alightmotion", "remini", "picsart",
]

# Info type requested about a product
INFO_TYPE_KEYWORDS = {
    "garansi": ["garansi", "warranty", "jaminan"],
    "harga": ["harga", "price", "berapa", "biaya", "paket", "package"],
    "fitur": ["fitur", "feature", "spek", "benefit", "keunggulan"],
    "full": ["info lengkap", "detail", "semua", "full info", "penjelasan"],
}

# Mood lexicon, checked in this order
MOOD_KEYWORDS = {
    "marah": [
        "gak dapet", "kecewa", "kesel", "parah", "kok lama", "udah nunggu",
        "masih belum", "gak jelas", "ga kelar2", "bosen", "sampe kapan",
        "kapan akun", "error terus", "gimana sih", "kok susah", "coba cek lagi",
        "udah capek", "ngaco", "payah",
    ],
    "positif": [
        "makasih", "thanks", "terima kasih", "oke kak", "cepat banget", "mantap",
        "sip", "lancar", "puas", "good job",
    ],
    "oot": [
        "curhat", "ngopi yuk", "iseng aja", "nongkrong", "gabut", "temenin aku",
        "ngobrol yuk", "main yuk", "ngomongin lain", "bukan order", "topik lain",
    ],
}

GREETING_WORDS = ["halo", "hai", "hello", "hi", "selamat pagi", "selamat siang", "selamat malam"]
THANKS_WORDS = ["makasih", "terima kasih", "thanks", "thank you", "thx"]
CATALOG_PHRASES = ["produk apa aja", "ada produk apa", "list produk"]

# Router command vocabularies
SYSTEM_COMMANDS = ["menu", "limit", "halo", "hai", "p", "bot", "assalamualaikum", "halo bot"]
GREETING_COMMANDS = ["halo", "hai", "p", "bot", "assalamualaikum", "halo bot"]

LAW_COMMANDS = ["law status", "violation log", "emergency stop", "emergency resume"]
LAW_MODIFY_COMMANDS = ["modify law", "change law"]

ANALYTICS_COMMANDS = [
    "dashboard", "stats", "traffic", "users", "products", "claims",
    "business", "marketing", "technical", "reset analytics",
]
PERFORMANCE_COMMANDS = ["performance stats", "performance optimize", "cache clear"]
SECURITY_COMMANDS = ["security status", "security clear", "unlock user"]
MONITORING_COMMANDS = ["monitoring status", "monitoring alerts", "monitoring report", "resolve alert"]
CLEANUP_COMMANDS = ["cleanup status", "cleanup run", "cleanup memory"]
BACKUP_COMMANDS = ["backup status", "backup create", "backup incremental", "backup verify"]

OWNER_TOOL_COMMANDS = (
    ANALYTICS_COMMANDS + PERFORMANCE_COMMANDS + SECURITY_COMMANDS
    + MONITORING_COMMANDS + CLEANUP_COMMANDS + BACKUP_COMMANDS
)

LEARNING_COMMANDS = [
    "learning stats", "bot stats", "reset learning", "clear memory",
    "learning help", "teach help", "review queue", "cek queue",
    "unknown cases", "cases", "auto learn", "approve", "reject",
]

ADMIN_COMMANDS = ["addbuyer", "addclaim", "addmod", "listmod", "delmod", "adminhelp", "adminmenu"]

ATTENDANCE_COMMANDS = {
    "start": ["mulai", "start", "masuk kerja"],
    "break": ["istirahat", "break", "rest"],
    "back": ["masuk", "back", "kembali", "masuk lagi"],
    "close": ["close", "selesai", "pulang", "off"],
    "status": ["status absen", "absen status", "my status"],
}

TEACHING_TRIGGERS = [
    "ajari bot", "ajarin bot", "teach bot", "bot learn", "ingat ini", "remember",
    "jawaban untuk", "responnya", "bilang aja", "katakan", "bales dengan",
    "jangan nanya balik", "jangan tanya balik", "langsung jawab",
    "responmu jangan", "jawab langsung", "bilang begini",
    "kalo ada yang nanya", "kalau ada yang nanya", "kalau ditanya", "kalo ditanya", "saat ditanya",
]
