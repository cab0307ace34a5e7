# alarm_backup/services/notification_service.py
"""
Failure notifications: HTML email through AWS SES to SUPPORT_EMAIL whenever
an alarm is dead-lettered. Best effort: never raises, returns True/False.
"""

import html
import json
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from alarm_backup.schemas.alarm import AlarmEvent
from alarm_backup.utils.logger import get_logger

logger = get_logger(__name__)

SUBJECT = "Unifi Protect Video Download Failure - Event {event_id}"

_STYLE = (
    "body{font-family:Arial,sans-serif;margin:20px}"
    "table{border-collapse:collapse;width:100%}"
    "th,td{border:1px solid #ddd;padding:8px;text-align:left}"
    "th{background-color:#f2f2f2}"
    ".failure{color:#d32f2f;font-weight:bold}"
    ".info{background-color:#e3f2fd;padding:10px;border-radius:5px}"
)


class NotificationService:
    def __init__(self, settings, ses_client):
        self.settings = settings
        self.ses = ses_client

    def send_failure_notification(
        self,
        alarm: AlarmEvent,
        reason: str,
        message_id: Optional[str],
        retry_attempt: str,
    ) -> bool:
        recipient = self.settings.SUPPORT_EMAIL
        if not recipient:
            logger.warning("[NOTIFY] SUPPORT_EMAIL not configured: skipping failure notification")
            return False

        trigger = alarm.first_trigger
        event_id = (trigger.event_id if trigger else None) or "Unknown"

        try:
            response = self.ses.send_email(
                Source=recipient,
                Destination={"ToAddresses": [recipient]},
                Message={
                    "Subject": {"Data": SUBJECT.format(event_id=event_id)},
                    "Body": {"Html": {"Data": self.render(alarm, reason, message_id, retry_attempt)}},
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"[NOTIFY] Failed to send failure notification for {event_id}: {e}")
            return False

        logger.info(f"[NOTIFY] 📧 Failure notification sent to {recipient} (MessageId={response.get('MessageId')})")
        return True

    def render(self, alarm: AlarmEvent, reason: str, message_id: Optional[str], retry_attempt: str) -> str:
        trigger = alarm.first_trigger
        device_name = "Unknown Device"
        if trigger and trigger.device:
            device_name = trigger.device_name or self.settings.resolve_device_name(trigger.device)
        event_id = (trigger.event_id if trigger else None) or "Unknown"
        event_time = "Unknown"
        if alarm.timestamp > 0:
            moment = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=alarm.timestamp)
            event_time = moment.strftime("%Y-%m-%d %H:%M:%S UTC")

        esc = html.escape
        rows = [
            "<html><head><style>" + _STYLE + "</style></head><body>",
            "<h1>🚨 Unifi Protect Video Download Failure</h1>",
            "<p class='failure'>A video download has failed and been sent to the Dead Letter Queue for retry.</p>",
            "<h2>📋 Failure Details</h2><table>",
            f"<tr><th>Failure Reason</th><td class='failure'>{esc(reason)}</td></tr>",
            f"<tr><th>SQS Message ID</th><td>{esc(message_id or 'Unknown')}</td></tr>",
            f"<tr><th>Retry Attempt Time</th><td>{esc(retry_attempt)}</td></tr>",
            "</table>",
            "<h2>🏠 Event Information</h2><table>",
            f"<tr><th>Event ID</th><td>{esc(event_id)}</td></tr>",
            f"<tr><th>Device</th><td>{esc(device_name)}</td></tr>",
            f"<tr><th>Event Time</th><td>{esc(event_time)}</td></tr>",
            f"<tr><th>Event Path</th><td>{esc(alarm.event_path or 'Not available')}</td></tr>",
            "</table>",
            "<h2>🔗 Related Resources</h2><div class='info'><ul>",
            f"<li><a href='{esc(self.logs_url())}' target='_blank'>📊 Logs</a> - View detailed execution logs</li>",
        ]
        event_key = trigger.event_key if trigger else None
        if event_key and self.settings.STORAGE_BUCKET:
            rows.append(f"<li><a href='{esc(self.event_url(event_key))}' target='_blank'>📁 Event Data</a> - View stored alarm event data</li>")
        rows += [
            "<li>📱 <strong>Dead Letter Queue</strong> - Check the queue console for retry options</li>",
            "</ul></div>",
            "<h2>📄 Alarm Event JSON</h2>",
            "<details><summary>Click to expand full alarm data</summary>",
            "<pre style='background-color:#f5f5f5;padding:15px;border-radius:5px;overflow-x:auto;'>",
            esc(json.dumps(alarm.to_wire(), indent=2)),
            "</pre></details>",
            "<div class='info'><h3>🔧 Next Steps</h3><ol>",
            "<li>Review the logs for detailed error information</li>",
            "<li>Check if the Unifi Protect system is accessible and responsive</li>",
            "<li>Verify the event path is valid and the video is available</li>",
            "<li>Manually retry processing from the Dead Letter Queue if needed</li>",
            "</ol></div>",
            "<hr><p><small>This is an automated notification from the alarm backup service.</small></p>",
            "</body></html>",
        ]
        return "\n".join(rows)

    def logs_url(self) -> str:
        region = self.settings.AWS_REGION
        log_group = quote(f"/aws/lambda/{self.settings.FUNCTION_NAME}", safe="")
        end = int(datetime.now(timezone.utc).timestamp() * 1000)
        start = end - 60 * 60 * 1000
        return (
            f"https://{region}.console.aws.amazon.com/cloudwatch/home?region={region}"
            f"#logsV2:log-groups/log-group/{log_group}/log-events?start={start}&end={end}"
        )

    def event_url(self, event_key: str) -> str:
        return (
            f"https://s3.console.aws.amazon.com/s3/object/{self.settings.STORAGE_BUCKET}"
            f"?region={self.settings.AWS_REGION}&prefix={quote(event_key, safe='')}"
        )
