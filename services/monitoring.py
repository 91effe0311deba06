"""
Host and service health monitoring.

Samples memory and CPU with psutil and reads response time and error
rate from analytics; crossing a warning or critical threshold raises an
alert that stays active until the owner resolves it.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, List, Callable
import psutil
from config.thresholds import MEMORY_PERCENT, CPU_PERCENT, RESPONSE_TIME_MS, ERROR_RATE_PERCENT
from services.analytics import AnalyticsManager

logger = logging.getLogger(__name__)

# Same metric will not alert again within this many seconds
ALERT_COOLDOWN_SECONDS = 5 * 60

THRESHOLDS = {
    "memory": MEMORY_PERCENT,
    "cpu": CPU_PERCENT,
    "response_time": RESPONSE_TIME_MS,
    "error_rate": ERROR_RATE_PERCENT,
}

UNITS = {"memory": "%", "cpu": "%", "response_time": "ms", "error_rate": "%"}


@dataclass
class Alert:
    id: int
    metric: str
    severity: str
    value: float
    threshold: float
    timestamp: float
    resolved: bool = False

    @property
    def message(self) -> str:
        unit = UNITS.get(self.metric, "")
        return f"{self.metric} {self.value:.1f}{unit} above {self.threshold}{unit}"


def sample_system() -> Dict[str, float]:
    """Memory and CPU usage of the host, plus this process' RSS in MB"""
    return {
        "memory": psutil.virtual_memory().percent,
        "cpu": psutil.cpu_percent(interval=None),
        "process_rss_mb": psutil.Process().memory_info().rss / (1024 * 1024),
    }


class MonitoringManager:
    """Threshold alerts over host and bot metrics"""

    def __init__(self, analytics: AnalyticsManager,
                 sampler: Callable[[], Dict[str, float]] = sample_system,
                 clock: Callable[[], float] = time.time):
        self.analytics = analytics
        self.sampler = sampler
        self._clock = clock
        self.started_at = clock()
        self.alerts: Dict[int, Alert] = {}
        self.last_metrics: Dict[str, float] = {}
        self._next_id = 1
        self._cooldown: Dict[str, float] = {}

    def collect(self) -> Dict[str, float]:
        metrics = dict(self.sampler())
        metrics["response_time"] = self.analytics.avg_response_ms
        metrics["error_rate"] = self.analytics.error_rate
        self.last_metrics = metrics
        return metrics

    def check(self) -> List[Alert]:
        """Sample metrics and raise alerts for every threshold crossed"""
        metrics = self.collect()
        raised = []
        for metric, (warning, critical) in THRESHOLDS.items():
            value = metrics.get(metric, 0.0)
            if value > critical:
                severity, threshold = "critical", critical
            elif value > warning:
                severity, threshold = "warning", warning
            else:
                continue
            alert = self._raise(metric, severity, value, threshold)
            if alert:
                raised.append(alert)
        return raised

    def _raise(self, metric: str, severity: str, value: float, threshold: float) -> Optional[Alert]:
        key = f"{metric}:{severity}"
        now = self._clock()
        if self._cooldown.get(key, 0) > now:
            return None

        alert = Alert(self._next_id, metric, severity, value, threshold, now)
        self._next_id += 1
        self.alerts[alert.id] = alert
        self._cooldown[key] = now + ALERT_COOLDOWN_SECONDS

        if severity == "critical":
            logger.error(f"🚨 [CRITICAL] {alert.message}")
        else:
            logger.warning(f"⚠️ [WARNING] {alert.message}")
        return alert

    def active_alerts(self) -> List[Alert]:
        return [a for a in self.alerts.values() if not a.resolved]

    def resolve(self, alert_id: int) -> bool:
        alert = self.alerts.get(alert_id)
        if alert is None or alert.resolved:
            return False
        alert.resolved = True
        return True

    def health(self) -> str:
        active = self.active_alerts()
        if any(a.severity == "critical" for a in active):
            return "critical"
        if active:
            return "warning"
        return "healthy"

    def uptime(self) -> str:
        seconds = int(self._clock() - self.started_at)
        hours, rest = divmod(seconds, 3600)
        return f"{hours}h {rest // 60}m"

    def handle_command(self, command: str) -> Optional[str]:
        cmd = command.lower().strip()

        if cmd == "monitoring status":
            metrics = self.collect()
            return (
                "📊 *MONITORING STATUS*\n\n"
                f"🏥 *System Health:* {self.health().upper()}\n"
                f"⏱️ *Uptime:* {self.uptime()}\n"
                f"🚨 *Active Alerts:* {len(self.active_alerts())}\n\n"
                "📈 *Current Performance:*\n"
                f"• Memory: {metrics.get('memory', 0):.1f}%\n"
                f"• CPU: {metrics.get('cpu', 0):.1f}%\n"
                f"• Process: {metrics.get('process_rss_mb', 0):.1f} MB\n"
                f"• Response Time: {metrics['response_time']:.0f}ms\n"
                f"• Error Rate: {metrics['error_rate']:.2f}%\n\n"
                "💼 *Business Metrics:*\n"
                f"• Messages Processed: {self.analytics.total_messages}\n"
                f"• Active Users: {len(self.analytics.users)}"
            )

        if cmd == "monitoring alerts":
            active = self.active_alerts()
            if not active:
                return "✅ No active alerts"
            lines = [f"🚨 *ACTIVE ALERTS* ({len(active)})", ""]
            for alert in active:
                when = datetime.fromtimestamp(alert.timestamp).strftime("%d/%m/%Y %H:%M")
                lines += [f"• [{alert.severity.upper()}] {alert.message}", f"  ID: {alert.id} | {when}", ""]
            lines.append('Use "resolve alert [ID]" to resolve specific alerts.')
            return "\n".join(lines)

        if cmd.startswith("resolve alert"):
            raw = cmd[len("resolve alert"):].strip()
            if not raw.isdigit():
                return "Format: resolve alert [ID]"
            if self.resolve(int(raw)):
                return f"✅ Alert {raw} resolved"
            return f"❌ Alert {raw} tidak ditemukan atau sudah resolved"

        if cmd == "monitoring report":
            raised = self.check()
            metrics = self.last_metrics
            by_severity = {"critical": 0, "warning": 0}
            for alert in self.alerts.values():
                by_severity[alert.severity] = by_severity.get(alert.severity, 0) + 1
            return (
                "📋 *MONITORING REPORT*\n\n"
                f"🏥 *Health:* {self.health().upper()}\n"
                f"⏱️ *Uptime:* {self.uptime()}\n"
                f"🆕 *New Alerts:* {len(raised)}\n"
                f"📚 *Alert History:* {len(self.alerts)} "
                f"(critical {by_severity['critical']}, warning {by_severity['warning']})\n\n"
                f"• Memory: {metrics.get('memory', 0):.1f}%\n"
                f"• CPU: {metrics.get('cpu', 0):.1f}%\n"
                f"• Response Time: {metrics.get('response_time', 0):.0f}ms\n"
                f"• Error Rate: {metrics.get('error_rate', 0):.2f}%"
            )

        return None
