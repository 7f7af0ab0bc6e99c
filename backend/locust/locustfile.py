"""
Locust Load Test Suite

Needs a seeded, active business open every day 09:00-17:00:
  export BUSINESS_ID=<uuid>

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test availability cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
import uuid
from datetime import datetime, time, timedelta, timezone

from locust import HttpUser, between, tag, task

BUSINESS_ID = os.environ.get("BUSINESS_ID", "00000000-0000-0000-0000-000000000001")

# Every concurrency user targets the same slot, three days out at 10:00 UTC.
CONTESTED_DAY = (datetime.now(timezone.utc) + timedelta(days=3)).date()
CONTESTED_START = datetime.combine(CONTESTED_DAY, time(10, 0), tzinfo=timezone.utc)


def booking_payload(scheduled_at: datetime, duration: int = 60) -> dict:
    return {
        "business_id": BUSINESS_ID,
        "scheduled_at": scheduled_at.isoformat(),
        "duration": duration,
        "total_amount": "40.00",
        "customer_info": {
            "name": "Load Tester",
            "phone": "+1 555 010 0000",
            "email": "load@example.com",
        },
    }


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many users, overlapping requests for one slot

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no overlap survived:
      SELECT a.id, b.id FROM bookings a JOIN bookings b
        ON a.business_id = b.business_id AND a.id < b.id
       AND a.scheduled_at < b.ends_at AND b.scheduled_at < a.ends_at
     WHERE a.status <> 'cancelled' AND b.status <> 'cancelled';
    Should return no rows
    """

    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = {"X-User-ID": f"load-{uuid.uuid4().hex[:12]}"}

    @tag("concurrency")
    @task
    def book_contested_slot(self):
        """All users fight for overlapping intervals around 10:00."""
        offset = random.choice([0, 15, 30, 45])
        with self.client.post(
            "/api/v1/bookings/",
            json=booking_payload(CONTESTED_START + timedelta(minutes=offset)),
            headers=self.headers,
            name="/api/v1/bookings/ [contested]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409 expected: slot taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Availability cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again
    """

    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def availability(self):
        day = (datetime.now(timezone.utc) + timedelta(days=random.randint(1, 7))).date()
        self.client.get(
            f"/api/v1/businesses/{BUSINESS_ID}/availability?date={day.isoformat()}",
            name="/api/v1/businesses/{id}/availability",
        )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """

    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = {"X-User-ID": f"edge-{uuid.uuid4().hex[:12]}"}

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_business(self):
        payload = booking_payload(CONTESTED_START)
        payload["business_id"] = str(uuid.uuid4())
        with self.client.post("/api/v1/bookings/", json=payload, headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def duration_out_of_range(self):
        with self.client.post(
            "/api/v1/bookings/",
            json=booking_payload(CONTESTED_START, duration=5),
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def past_booking(self):
        with self.client.post(
            "/api/v1/bookings/",
            json=booking_payload(datetime.now(timezone.utc) - timedelta(days=1)),
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/", data="not json at all", headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_identity(self):
        with self.client.post("/api/v1/bookings/", json=booking_payload(CONTESTED_START), catch_response=True) as resp:
            self._expect(resp, [401])
