"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags throughput   # Listing and cached stats
  locust -f locustfile.py --tags auth         # Signup/login/protected reads
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Run the dev-data import first so there are tours to browse.
"""

import random
import string

from locust import HttpUser, between, events, tag, task

# Shared state
TOUR_IDS = []

PASSWORD = "test12345"


def random_email():
    return f"load_{random.randint(10000, 99999)}_{random.randint(0, 9999)}@test.com"


def random_name():
    return "Load " + "".join(random.choices(string.ascii_lowercase, k=10))


def signup(client):
    """Create a fresh user and return auth headers (empty on failure)."""
    resp = client.post("/api/v1/users/signup", json={
        "name": random_name(),
        "email": random_email(),
        "password": PASSWORD,
        "password_confirm": PASSWORD,
    })
    if resp.status_code == 201:
        return {"Authorization": f"Bearer {resp.json()['token']}"}
    return {}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("Tourbook load test starting against", environment.host)
    print("=" * 60)


class ThroughputUser(HttpUser):
    """
    TEST 1: Throughput - listing queries and cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis (REDIS_ENABLED=false), run again

    Compare avg response time and P95 for /tour-stats.
    Raise RATE_LIMIT_MAX first, or most requests end up as 429s.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_tours(self):
        page = random.randint(1, 3)
        resp = self.client.get(
            f"/api/v1/tours/?page={page}&limit=10&sort=-ratings_average,price",
            name="/api/v1/tours/ [page]",
        )
        if resp.status_code == 200:
            for tour in resp.json()["data"]["docs"]:
                if tour["id"] not in TOUR_IDS:
                    TOUR_IDS.append(tour["id"])

    @tag("throughput", "read")
    @task(5)
    def filtered_tours(self):
        self.client.get(
            f"/api/v1/tours/?price[lte]={random.choice([500, 1000, 1500])}&difficulty=easy",
            name="/api/v1/tours/ [filter]",
        )

    @tag("throughput", "read")
    @task(3)
    def top_cheap(self):
        self.client.get("/api/v1/tours/top-5-cheap")

    @tag("throughput", "read")
    @task(3)
    def tour_stats_cached(self):
        self.client.get("/api/v1/tours/tour-stats", name="/api/v1/tours/tour-stats [cached]")

    @tag("throughput", "read")
    @task(3)
    def tour_detail(self):
        if TOUR_IDS:
            self.client.get(f"/api/v1/tours/{random.choice(TOUR_IDS)}", name="/api/v1/tours/{id}")

    @tag("throughput", "geo")
    @task(2)
    def tours_within(self):
        self.client.get(
            "/api/v1/tours/tours-within/400/center/34.111745,-118.113491/unit/mi",
            name="/api/v1/tours/tours-within",
        )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class AuthUser(HttpUser):
    """
    TEST 2: Auth - bcrypt-bound signup/login and token verification

    Run: locust -f locustfile.py --tags auth -u 50 -r 10 --run-time 60s
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.email = random_email()
        resp = self.client.post("/api/v1/users/signup", json={
            "name": random_name(),
            "email": self.email,
            "password": PASSWORD,
            "password_confirm": PASSWORD,
        })
        self.headers = {"Authorization": f"Bearer {resp.json()['token']}"} if resp.status_code == 201 else {}

    @tag("auth")
    @task(5)
    def me(self):
        if self.headers:
            self.client.get("/api/v1/users/me", headers=self.headers)

    @tag("auth")
    @task(1)
    def login(self):
        self.client.post("/api/v1/users/login", json={"email": self.email, "password": PASSWORD})


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = signup(self.client)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_tour(self):
        with self.client.get("/api/v1/tours/999999", catch_response=True) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def bad_filter_value(self):
        with self.client.get("/api/v1/tours/?price[gte]=cheap", catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def unknown_filter_field(self):
        with self.client.get("/api/v1/tours/?password=x", catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def bad_latlng(self):
        with self.client.get("/api/v1/tours/distances/north,south/unit/km", catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/users/login",
            data="not json at all",
            headers={"Content-Type": "application/json"},
            catch_response=True,
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.get("/api/v1/bookings/", catch_response=True) as resp:
            self._expect(resp, [401])

    @tag("edge")
    @task
    def forbidden_role(self):
        if not self.headers:
            return
        with self.client.get("/api/v1/users/", headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [403])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing pages and the API (85%)
      - Some account reads (10%)
      - Rare reviews (5%)
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = signup(self.client)
        self.reviewed = set()

    @task(40)
    def browse_overview(self):
        self.client.get("/")

    @task(25)
    def browse_api(self):
        resp = self.client.get("/api/v1/tours/")
        if resp.status_code == 200:
            for tour in resp.json()["data"]["docs"]:
                if tour["id"] not in TOUR_IDS:
                    TOUR_IDS.append(tour["id"])

    @task(20)
    def view_tour(self):
        if TOUR_IDS:
            tour_id = random.choice(TOUR_IDS)
            self.client.get(f"/api/v1/tours/{tour_id}/reviews/", name="/api/v1/tours/{id}/reviews/")

    @task(10)
    def my_account(self):
        if self.headers:
            self.client.get("/api/v1/users/me", headers=self.headers)

    @task(5)
    def write_review(self):
        candidates = [tour_id for tour_id in TOUR_IDS if tour_id not in self.reviewed]
        if not candidates or not self.headers:
            return
        tour_id = random.choice(candidates)
        resp = self.client.post(
            f"/api/v1/tours/{tour_id}/reviews/",
            json={"review": "Load test review", "rating": random.randint(1, 5)},
            headers=self.headers,
            name="/api/v1/tours/{id}/reviews/ [create]",
        )
        if resp.status_code == 201:
            self.reviewed.add(tour_id)
