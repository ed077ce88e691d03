#!/usr/bin/env python3
"""
Send sample Lalamove webhook events to a running backend.

Usage: python send_test_webhook.py [LALAMOVE_ORDER_ID]
The order id must belong to an order that has already been dispatched.
"""

import os
import sys
import uuid
import time

import requests

# Configuration
API_BASE = os.getenv("API_BASE", "http://localhost:8000/api/v1")
WEBHOOK_URL = f"{API_BASE}/delivery/webhook"
DEFAULT_ORDER_ID = "3394517965935702476"

def build_event(event_type, order_id, **data):
    """Wrap ``data`` in the v3 webhook envelope"""
    data.setdefault("order", {})["orderId"] = order_id
    return {
        "apiKey": os.getenv("LALAMOVE_API_KEY", "pk_test_key"),
        "timestamp": int(time.time()),
        "eventId": str(uuid.uuid4()).upper(),
        "eventType": event_type,
        "eventVersion": "v3",
        "data": data,
    }

def sample_events(order_id):
    return [
        build_event(
            "DRIVER_ASSIGNED",
            order_id,
            driver={
                "driverId": "80029",
                "phone": "+6522211222",
                "name": "TestDriver 11222",
                "plateNumber": "VP4388905",
            },
            location={"lat": 1.3521, "lng": 103.8198},
        ),
        build_event("ORDER_STATUS_CHANGED", order_id, order={"status": "PICKED_UP"}),
        build_event("ORDER_STATUS_CHANGED", order_id, order={"status": "COMPLETED"}),
    ]

def send(event):
    try:
        response = requests.post(WEBHOOK_URL, json=event, timeout=10)
    except requests.RequestException as e:
        print(f"Error sending {event['eventType']}: {e}")
        return False
    print(f"{event['eventType']}: {response.status_code} {response.text}")
    return response.ok

def main():
    order_id = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_ORDER_ID
    print(f"Sending webhook events for Lalamove order {order_id} to {WEBHOOK_URL}")
    results = [send(event) for event in sample_events(order_id)]
    if not all(results):
        sys.exit(1)
    print("All webhook events acknowledged")

if __name__ == "__main__":
    main()
