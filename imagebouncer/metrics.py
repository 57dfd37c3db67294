"""
Metrics collection for the image bouncer webhook.
"""

import time
from collections import defaultdict
from typing import Dict


class MetricsCollector:
    """Collect and export metrics for monitoring."""

    def __init__(self):
        # Counters
        self.admission_total = defaultdict(int)  # by allowed/denied
        self.rejections_by_rule = defaultdict(int)  # latest-tag / registry
        self.exempt_total = 0
        self.input_errors = defaultdict(int)  # by error class name
        self.notifications = defaultdict(int)  # sent / failed / timeout

        # Histograms (simplified - just track sum and count)
        self.admission_duration_sum = 0.0
        self.admission_duration_count = 0

        self.start_time = time.time()

    def record_admission_decision(self, allowed: bool, rule: str = None, duration: float = 0.0):
        """Record an admission decision."""
        decision = "allowed" if allowed else "denied"
        self.admission_total[decision] += 1
        if not allowed and rule:
            self.rejections_by_rule[rule] += 1

        self.admission_duration_sum += duration
        self.admission_duration_count += 1

    def record_exempt(self):
        """Record a request skipped because of a whitelisted namespace."""
        self.exempt_total += 1

    def record_input_error(self, error_type: str):
        """Record a request that could not be evaluated."""
        self.input_errors[error_type] += 1

    def record_notification(self, outcome: str):
        """Record a notification attempt outcome."""
        self.notifications[outcome] += 1

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus format."""
        lines = []

        # Info metric
        lines.append("# HELP image_bouncer_info Image bouncer information")
        lines.append("# TYPE image_bouncer_info gauge")
        lines.append('image_bouncer_info{version="1.0.0"} 1')

        # Uptime
        uptime = time.time() - self.start_time
        lines.append("# HELP image_bouncer_uptime_seconds Uptime in seconds")
        lines.append("# TYPE image_bouncer_uptime_seconds gauge")
        lines.append(f"image_bouncer_uptime_seconds {uptime:.2f}")

        # Admission totals
        lines.append("# HELP image_bouncer_admissions_total Total admission decisions")
        lines.append("# TYPE image_bouncer_admissions_total counter")
        for decision, count in self.admission_total.items():
            lines.append(f'image_bouncer_admissions_total{{decision="{decision}"}} {count}')

        # By rule
        lines.append("# HELP image_bouncer_rejections_total Rejections by violated rule")
        lines.append("# TYPE image_bouncer_rejections_total counter")
        for rule, count in self.rejections_by_rule.items():
            lines.append(f'image_bouncer_rejections_total{{rule="{rule}"}} {count}')

        lines.append("# HELP image_bouncer_exempt_total Requests from whitelisted namespaces")
        lines.append("# TYPE image_bouncer_exempt_total counter")
        lines.append(f"image_bouncer_exempt_total {self.exempt_total}")

        # Duration
        if self.admission_duration_count > 0:
            lines.append("# HELP image_bouncer_decision_duration_seconds Decision duration")
            lines.append("# TYPE image_bouncer_decision_duration_seconds summary")
            lines.append(f"image_bouncer_decision_duration_seconds_sum {self.admission_duration_sum:.4f}")
            lines.append(f"image_bouncer_decision_duration_seconds_count {self.admission_duration_count}")

        # Errors
        if self.input_errors:
            lines.append("# HELP image_bouncer_input_errors_total Requests rejected as bad input")
            lines.append("# TYPE image_bouncer_input_errors_total counter")
            for error_type, count in self.input_errors.items():
                lines.append(f'image_bouncer_input_errors_total{{type="{error_type}"}} {count}')

        if self.notifications:
            lines.append("# HELP image_bouncer_notifications_total Rejection notification attempts")
            lines.append("# TYPE image_bouncer_notifications_total counter")
            for outcome, count in self.notifications.items():
                lines.append(f'image_bouncer_notifications_total{{outcome="{outcome}"}} {count}')

        return "\n".join(lines) + "\n"

    def export_json(self) -> Dict:
        """Export metrics as JSON."""
        return {
            "uptime_seconds": time.time() - self.start_time,
            "admission_total": dict(self.admission_total),
            "rejections_by_rule": dict(self.rejections_by_rule),
            "exempt_total": self.exempt_total,
            "admission_duration": {
                "sum": self.admission_duration_sum,
                "count": self.admission_duration_count,
                "average": self.admission_duration_sum / self.admission_duration_count
                if self.admission_duration_count > 0 else 0,
            },
            "input_errors": dict(self.input_errors),
            "notifications": dict(self.notifications),
        }
