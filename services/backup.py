"""
JSON backups of the content store with a SHA-256 manifest.

A backup is a directory under BACKUP_DIR:

    <backup_id>/
        manifest.json
        collections/<name>.json
        documents/<name>.json
        produk/<name>.txt

Full backups write every part. Incremental backups write only the parts
whose checksum differs from the latest backup; the manifest still lists
the checksum of every part so the next incremental has a baseline.
"""

import hashlib
import json
import logging
import os
import shutil
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Optional, Dict, Any, List
from config.settings import BACKUP_DIR
from config.thresholds import MAX_BACKUPS
from database.content_store import ContentStore

logger = logging.getLogger(__name__)

MANIFEST = "manifest.json"


class BackupError(Exception):
    """Raised when a backup cannot be written or read"""
    pass


@dataclass
class BackupManifest:
    backup_id: str
    created_at: str
    backup_type: str
    files: Dict[str, str] = field(default_factory=dict)
    checksums: Dict[str, str] = field(default_factory=dict)
    total_size: int = 0
    base: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackupManifest":
        return cls(**data)


@dataclass
class VerifyResult:
    backup_id: str
    ok: bool
    checked: int
    corrupted: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


def _checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _parts(snapshot: Dict[str, Any]) -> Dict[str, bytes]:
    """Relative path -> file bytes for every part of a store snapshot"""
    parts = {}
    for name, rows in snapshot["collections"].items():
        parts[f"collections/{name}.json"] = json.dumps(rows, ensure_ascii=False, indent=2, sort_keys=True).encode("utf-8")
    for name, data in snapshot["documents"].items():
        if data is not None:
            parts[f"documents/{name}.json"] = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True).encode("utf-8")
    for name, text in snapshot["products"].items():
        if text is not None:
            parts[f"produk/{name}.txt"] = text.encode("utf-8")
    return parts


def _format_size(size: int) -> str:
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


class BackupManager:
    """Creates, rotates and verifies content store backups"""

    def __init__(self, store: ContentStore, backup_dir: str = BACKUP_DIR, max_backups: int = MAX_BACKUPS):
        self.store = store
        self.backup_dir = backup_dir
        self.max_backups = max_backups
        self.failures = 0
        os.makedirs(self.backup_dir, exist_ok=True)

    def create(self, incremental: bool = False) -> BackupManifest:
        snapshot = self.store.export_snapshot()
        parts = _parts(snapshot)
        checksums = {path: _checksum(data) for path, data in parts.items()}

        base = self.latest() if incremental else None
        if base is not None:
            to_write = {p: d for p, d in parts.items() if base.checksums.get(p) != checksums[p]}
        else:
            to_write = parts

        now = datetime.now()
        backup_type = "incremental" if base is not None else "full"
        manifest = BackupManifest(
            backup_id=f"{backup_type}-{now.strftime('%Y%m%d-%H%M%S-%f')}",
            created_at=now.isoformat(),
            backup_type=backup_type,
            checksums=checksums,
            base=base.backup_id if base else None,
        )

        target = os.path.join(self.backup_dir, manifest.backup_id)
        try:
            for rel_path, data in to_write.items():
                path = os.path.join(target, rel_path)
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "wb") as f:
                    f.write(data)
                manifest.files[rel_path] = checksums[rel_path]
                manifest.total_size += len(data)

            os.makedirs(target, exist_ok=True)
            with open(os.path.join(target, MANIFEST), "w", encoding="utf-8") as f:
                json.dump(manifest.to_dict(), f, indent=2)
        except OSError as e:
            self.failures += 1
            shutil.rmtree(target, ignore_errors=True)
            logger.error(f"❌ Backup failed: {e}")
            raise BackupError(f"Backup failed: {e}")

        logger.info(f"💾 {backup_type} backup {manifest.backup_id}: {len(manifest.files)} files, "
                    f"{_format_size(manifest.total_size)}")
        self.rotate()
        return manifest

    def list_backups(self) -> List[BackupManifest]:
        """Manifests sorted oldest first"""
        manifests = []
        if not os.path.isdir(self.backup_dir):
            return manifests
        for entry in os.listdir(self.backup_dir):
            path = os.path.join(self.backup_dir, entry, MANIFEST)
            if not os.path.isfile(path):
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    manifests.append(BackupManifest.from_dict(json.load(f)))
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"⚠️ Skipping unreadable backup {entry}: {e}")
        return sorted(manifests, key=lambda m: m.created_at)

    def latest(self) -> Optional[BackupManifest]:
        backups = self.list_backups()
        return backups[-1] if backups else None

    def rotate(self) -> int:
        backups = self.list_backups()
        stale = backups[:-self.max_backups] if len(backups) > self.max_backups else []
        for manifest in stale:
            shutil.rmtree(os.path.join(self.backup_dir, manifest.backup_id), ignore_errors=True)
            logger.info(f"🗑️ Removed old backup {manifest.backup_id}")
        return len(stale)

    def verify(self, backup_id: Optional[str] = None) -> VerifyResult:
        manifest = self._find(backup_id) if backup_id else self.latest()
        if manifest is None:
            raise BackupError(f"Backup not found: {backup_id or 'latest'}")

        result = VerifyResult(backup_id=manifest.backup_id, ok=True, checked=0)
        root = os.path.join(self.backup_dir, manifest.backup_id)
        for rel_path, expected in manifest.files.items():
            path = os.path.join(root, rel_path)
            result.checked += 1
            if not os.path.isfile(path):
                result.missing.append(rel_path)
                continue
            with open(path, "rb") as f:
                if _checksum(f.read()) != expected:
                    result.corrupted.append(rel_path)
        result.ok = not result.missing and not result.corrupted
        if not result.ok:
            logger.error(f"❌ Backup {manifest.backup_id} failed verification: "
                         f"{len(result.corrupted)} corrupted, {len(result.missing)} missing")
        return result

    def _find(self, backup_id: str) -> Optional[BackupManifest]:
        for manifest in self.list_backups():
            if manifest.backup_id == backup_id:
                return manifest
        return None

    def handle_command(self, command: str) -> Optional[str]:
        cmd = command.lower().strip()

        if cmd == "backup status":
            backups = self.list_backups()
            full = [b for b in backups if b.backup_type == "full"]
            incremental = [b for b in backups if b.backup_type == "incremental"]
            return (
                "💾 *BACKUP STATUS*\n\n"
                "📊 *Statistics:*\n"
                f"• Total Backups: {len(backups)}\n"
                f"• Last Full Backup: {full[-1].created_at[:19] if full else 'Never'}\n"
                f"• Last Incremental: {incremental[-1].created_at[:19] if incremental else 'Never'}\n"
                f"• Total Size: {_format_size(sum(b.total_size for b in backups))}\n"
                f"• Failures: {self.failures}\n\n"
                "⚙️ *Configuration:*\n"
                f"• Max Backups: {self.max_backups}\n"
                f"• Directory: {self.backup_dir}"
            )

        try:
            if cmd in ("backup create", "backup incremental"):
                manifest = self.create(incremental=cmd == "backup incremental")
                return (
                    f"✅ Backup {manifest.backup_type} selesai\n\n"
                    f"🆔 {manifest.backup_id}\n"
                    f"📁 Files: {len(manifest.files)}\n"
                    f"💾 Size: {_format_size(manifest.total_size)}"
                )

            if cmd == "backup verify" or cmd.startswith("backup verify "):
                backup_id = cmd[len("backup verify"):].strip() or None
                result = self.verify(backup_id)
                if result.ok:
                    return f"✅ Backup {result.backup_id} valid ({result.checked} files checked)"
                return (
                    f"❌ Backup {result.backup_id} rusak\n"
                    f"• Corrupted: {', '.join(result.corrupted) or '-'}\n"
                    f"• Missing: {', '.join(result.missing) or '-'}"
                )
        except BackupError as e:
            return f"❌ {e}"

        return None
