"""Send a test alarm webhook to the backend, the way the UniFi Protect console does."""

import argparse
import json
import time
import uuid

import requests

BACKEND_URL = "http://localhost:8080/alarmevent"

ALARM_TEMPLATE = {
    "alarm": {
        "name": "Backup Alarm",
        "sources": [{"device": "", "type": "include"}],
        "conditions": [{"condition": {"type": "is", "source": "motion"}}],
        "triggers": [{"key": "motion", "device": "", "eventId": ""}],
        "eventPath": "",
        "eventLocalLink": "",
    },
    "timestamp": 0,
}


def simulate_alarm(url, device, key, with_video, api_key=None):
    payload = json.loads(json.dumps(ALARM_TEMPLATE))  # deep copy
    event_id = uuid.uuid4().hex[:24]
    alarm = payload["alarm"]
    alarm["sources"][0]["device"] = device
    alarm["triggers"][0].update({"key": key, "device": device, "eventId": event_id})
    if with_video:
        alarm["eventPath"] = f"/protect/events/event/{event_id}"
        alarm["eventLocalLink"] = f"https://unifi.local/protect/events/event/{event_id}"
    payload["timestamp"] = int(time.time() * 1000)

    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["X-API-Key"] = api_key
    resp = requests.post(url, json=payload, headers=headers, timeout=10)
    print(f"✅ {key} alarm {event_id} from {device} → HTTP {resp.status_code}: {resp.text}")


def simulate_preflight(url):
    resp = requests.options(url, timeout=10)
    print(f"✅ OPTIONS → HTTP {resp.status_code}: {dict(resp.headers)}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate UniFi Protect alarm webhooks for testing")
    parser.add_argument("--url", default=BACKEND_URL)
    parser.add_argument("--device", default="28704E113F64")
    parser.add_argument("--key", default="motion", choices=["motion", "person", "vehicle", "animal", "package"])
    parser.add_argument("--no-video", action="store_true", help="Omit eventPath so video retrieval is skipped")
    parser.add_argument("--count", type=int, default=1)
    parser.add_argument("--preflight", action="store_true")
    parser.add_argument("--api-key")
    args = parser.parse_args()

    if args.preflight:
        simulate_preflight(args.url)
    for _ in range(args.count):
        simulate_alarm(args.url, args.device, args.key, not args.no_video, args.api_key)
