"""
Pytest configuration and fixtures for protect tests.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Set

import pytest

from protect import EngineError, LocalEngine, Protect, ProtectSettings
from protect.engine import Engine

TEST_CLIENT_KEY = "000102030405060708090a0b0c0d0e0f101112131415161718191a1b1c1d1e1f"


class RecordingEngine(Engine):
    """
    Fake engine recording every call.

    Ciphertexts are JSON holding the plaintext and context, so decryption with
    another context fails like it does with a real engine. Index payloads are
    filled in for each index the encrypt config requests.
    """

    def __init__(self) -> None:
        self.created = 0
        self.freed = 0
        self.configs: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.fail_on: Set[str] = set()
        self.result_delta = 0

    @property
    def open_clients(self) -> int:
        return self.created - self.freed

    def new_client(self, config_json: str) -> Dict[str, Any]:
        self._maybe_fail("new_client")
        config = json.loads(config_json)
        self.configs.append(config)
        self.created += 1
        return {"tables": config["tables"]}

    def free_client(self, client: Dict[str, Any]) -> None:
        self.freed += 1

    def encrypt(self, client, plaintext, column, table, context_json=None) -> str:
        self.calls.append(("encrypt", plaintext, column, table, context_json))
        self._maybe_fail("encrypt")
        context = json.loads(context_json) if context_json else None
        return json.dumps(self._envelope(client, plaintext, column, table, context))

    def decrypt(self, client, ciphertext, context_json=None) -> str:
        self.calls.append(("decrypt", ciphertext, context_json))
        self._maybe_fail("decrypt")
        context = json.loads(context_json) if context_json else None
        return self._open(ciphertext, context)

    def encrypt_bulk(self, client, items_json: str) -> str:
        items = json.loads(items_json)
        self.calls.append(("encrypt_bulk", items))
        self._maybe_fail("encrypt_bulk")
        envelopes = [
            self._envelope(client, i["plaintext"], i["column"], i["table"], i["context"])
            for i in items
        ]
        return json.dumps(self._adjust(envelopes))

    def decrypt_bulk(self, client, items_json: str) -> str:
        items = json.loads(items_json)
        self.calls.append(("decrypt_bulk", items))
        self._maybe_fail("decrypt_bulk")
        plaintexts = [self._open(i["ciphertext"], i["context"]) for i in items]
        return json.dumps(self._adjust(plaintexts))

    def create_search_terms(self, client, items_json: str) -> str:
        items = json.loads(items_json)
        self.calls.append(("create_search_terms", items))
        self._maybe_fail("create_search_terms")
        terms = []
        for item in items:
            envelope = self._envelope(
                client, item["plaintext"], item["column"], item["table"], item["context"]
            )
            terms.append({key: envelope[key] for key in ("hm", "ob", "bf", "sv", "i")})
        return json.dumps(self._adjust(terms))

    def _envelope(self, client, plaintext, column, table, context) -> Dict[str, Any]:
        column_config = client["tables"][table][column]
        indexes = column_config["indexes"]
        return {
            "k": "ct",
            "c": json.dumps({"p": plaintext, "x": context}),
            "dt": column_config["cast_as"],
            "hm": f"hm:{plaintext}" if "unique" in indexes else None,
            "ob": [f"ob:{plaintext}"] if "ore" in indexes else None,
            "bf": [1, 2, 3] if "match" in indexes else None,
            "sv": [{"s": "s", "t": "t", "r": "r", "pa": False}] if "ste_vec" in indexes else None,
            "i": {"t": table, "c": column},
            "v": 2,
        }

    @staticmethod
    def _open(ciphertext: str, context: Optional[Dict[str, Any]]) -> str:
        try:
            sealed = json.loads(ciphertext)
        except ValueError:
            raise EngineError("malformed ciphertext")
        if sealed["x"] != context:
            raise EngineError("context mismatch")
        return sealed["p"]

    def _adjust(self, results: List[Any]) -> List[Any]:
        if self.result_delta < 0:
            return results[: self.result_delta]
        return results + results[:1] * self.result_delta

    def _maybe_fail(self, method: str) -> None:
        if method in self.fail_on:
            raise EngineError(f"{method} rejected by engine")


@pytest.fixture
def engine() -> RecordingEngine:
    """Create a recording fake engine."""
    return RecordingEngine()


@pytest.fixture
def protect(engine: RecordingEngine) -> Protect:
    """Create a Protect service backed by the recording engine."""
    return Protect(engine=engine)


@pytest.fixture
def local_settings() -> ProtectSettings:
    """Settings for the local engine with a fixed client key."""
    return ProtectSettings(client_key=TEST_CLIENT_KEY)


@pytest.fixture
def local_protect(local_settings: ProtectSettings) -> Protect:
    """Create a Protect service backed by the AES-GCM local engine."""
    return Protect(engine=LocalEngine(local_settings))
