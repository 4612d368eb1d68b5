"""HTTP and WebSocket routes, served by an engine over the in-memory store."""

import unittest
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.dependencies import get_connection_manager, get_roulette_service
from fakes import FakeGameStore, SequenceRandom
from routers import roulette_router, ws_router
from services.broadcaster import ConnectionManager
from services.game_service import RouletteService
from shared.game.config import GameConfig
from shared.game.engine import RouletteEngine
from shared.game.errors import StoreUnavailable


class UnavailableStore:
    @asynccontextmanager
    async def transaction(self):
        raise StoreUnavailable()
        yield

    @asynccontextmanager
    async def snapshot(self):
        raise StoreUnavailable()
        yield

    async def round_history(self, limit=20):
        raise StoreUnavailable()


def build_app(store) -> FastAPI:
    service = RouletteService(RouletteEngine(store, GameConfig(), SequenceRandom(0.0)))
    manager = ConnectionManager()

    app = FastAPI()
    app.include_router(roulette_router.router)
    app.include_router(ws_router.router)
    app.dependency_overrides[get_roulette_service] = lambda: service
    app.dependency_overrides[get_connection_manager] = lambda: manager
    app.dependency_overrides[ws_router.get_service_provider] = lambda: (lambda: service)
    return app


class RouterTestCase(unittest.TestCase):
    def setUp(self):
        self.store = FakeGameStore()
        self.client = TestClient(build_app(self.store))

    def as_user(self, user):
        return {"X-User-Id": str(user.id)}


class TestTableRoutes(RouterTestCase):
    def test_state(self):
        alice = self.store.add_user("alice")
        self.store.seat(alice, 10)
        self.store.set_pot(10)

        response = self.client.get("/api/roulette/state")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["game_state"]["pot"], 10)
        self.assertEqual(body["active_players"][0]["user_name"], "alice")
        self.assertEqual(body["active_players"][0]["win_probability"], 1.0)

    def test_queue_limit_is_validated(self):
        self.assertEqual(self.client.get("/api/roulette/queue?limit=0").status_code, 422)
        response = self.client.get("/api/roulette/queue?limit=5")
        self.assertEqual(response.json(), {"entries": [], "count": 0})

    def test_odds(self):
        self.store.seat(self.store.add_user("a"), 5)
        self.store.seat(self.store.add_user("b"), 20)

        body = self.client.get("/api/roulette/odds").json()

        self.assertEqual(body["stats"]["total_players"], 2)
        self.assertEqual(set(body["stats"]["probability_by_entry"]), {"5", "20"})

    def test_store_unavailable_maps_to_503(self):
        client = TestClient(build_app(UnavailableStore()))

        response = client.get("/api/roulette/state")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["detail"]["code"], "STORE_UNAVAILABLE")
        self.assertEqual(client.get("/api/roulette/rounds").status_code, 503)


class TestPlayerRoutes(RouterTestCase):
    def test_join_requires_identity(self):
        response = self.client.post("/api/roulette/join", json={"entry_amount": 10})
        self.assertEqual(response.status_code, 401)

        response = self.client.post(
            "/api/roulette/join", json={"entry_amount": 10}, headers={"X-User-Id": "abc"}
        )
        self.assertEqual(response.status_code, 401)

    def test_join(self):
        alice = self.store.add_user("alice")

        response = self.client.post(
            "/api/roulette/join", json={"entry_amount": 10}, headers=self.as_user(alice)
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {
                "new_balance": 90,
                "status": "playing",
                "queue_length": 0,
                "admitted": [{"id": alice.id, "name": "alice", "entry_amount": 10, "position": 0}],
            },
        )

    def test_join_invalid_amount(self):
        alice = self.store.add_user("alice")

        response = self.client.post(
            "/api/roulette/join", json={"entry_amount": 7}, headers=self.as_user(alice)
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"]["code"], "INVALID_ENTRY_AMOUNT")

    def test_join_insufficient_balance(self):
        alice = self.store.add_user("alice", balance=1)

        response = self.client.post(
            "/api/roulette/join", json={"entry_amount": 5}, headers=self.as_user(alice)
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["code"], "INSUFFICIENT_BALANCE")

    def test_balance_of_unknown_user(self):
        response = self.client.get("/api/roulette/me/balance", headers={"X-User-Id": "404"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"]["code"], "USER_NOT_FOUND")

    def test_deposit_and_history(self):
        alice = self.store.add_user("alice", balance=0)

        response = self.client.post(
            "/api/roulette/me/deposit", json={"amount": 250}, headers=self.as_user(alice)
        )
        self.assertEqual(response.json(), {"new_balance": 250})

        bad = self.client.post(
            "/api/roulette/me/deposit", json={"amount": 0}, headers=self.as_user(alice)
        )
        self.assertEqual(bad.status_code, 400)
        self.assertEqual(bad.json()["detail"]["code"], "INVALID_DEPOSIT_AMOUNT")

        history = self.client.get("/api/roulette/me/transactions", headers=self.as_user(alice))
        [entry] = history.json()["transactions"]
        self.assertEqual((entry["kind"], entry["amount"]), ("deposit", 250))


class TestSpinRoutes(RouterTestCase):
    def test_spin_needs_players(self):
        alice = self.store.add_user("alice")
        self.store.seat(alice, 10)

        response = self.client.post("/api/roulette/spin", headers=self.as_user(alice))

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["code"], "NOT_ENOUGH_PLAYERS")

    def test_finish_without_spin(self):
        alice = self.store.add_user("alice")
        self.store.seat(alice, 20)
        self.store.set_pot(100)

        response = self.client.post("/api/roulette/spin/finish", headers=self.as_user(alice))

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["code"], "SPIN_NOT_STARTED")
        self.assertEqual(self.store.tables.users[alice.id].balance, 100)

    def test_full_round(self):
        alice = self.store.add_user("alice")
        bob = self.store.add_user("bob")
        for user in (alice, bob):
            self.client.post(
                "/api/roulette/join", json={"entry_amount": 20}, headers=self.as_user(user)
            )

        spin = self.client.post("/api/roulette/spin", headers=self.as_user(alice))
        self.assertEqual(spin.json(), {"accepted": True, "player_count": 2})

        again = self.client.post("/api/roulette/spin", headers=self.as_user(bob))
        self.assertEqual(again.json()["detail"]["code"], "SPIN_IN_PROGRESS")

        finish = self.client.post("/api/roulette/spin/finish", headers=self.as_user(alice))
        self.assertEqual(finish.status_code, 200)
        body = finish.json()
        self.assertEqual(body["winner"]["id"], alice.id)
        self.assertEqual(body["round_status"], "FINISHED")
        self.assertEqual(body["status"], "WAITING_FOR_PLAYERS")
        self.assertIsNone(body["new_player"])

        second = self.client.post("/api/roulette/spin/finish", headers=self.as_user(bob))
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.json()["detail"]["code"], "SPIN_NOT_STARTED")

        rounds = self.client.get("/api/roulette/rounds").json()["rounds"]
        self.assertEqual(len(rounds), 1)

    def test_admit(self):
        alice = self.store.add_user("alice")
        self.store.enqueue(alice, 15)

        response = self.client.post("/api/roulette/admit", headers=self.as_user(alice))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["admitted"][0]["id"], alice.id)


class TestWebSocket(RouterTestCase):
    def test_state_on_connect_and_on_request(self):
        self.store.set_pot(42)

        with self.client.websocket_connect("/ws/roulette") as ws:
            first = ws.receive_json()
            self.assertEqual(first["type"], "game-state-update")
            self.assertEqual(first["data"]["game_state"]["pot"], 42)

            ws.send_json({"type": "request-game-state"})
            self.assertEqual(ws.receive_json()["type"], "game-state-update")

            ws.send_text("hello")
            error = ws.receive_json()
            self.assertEqual(error["type"], "error")
            self.assertEqual(error["data"]["code"], "WS_INVALID_MESSAGE")


if __name__ == "__main__":
    unittest.main()
