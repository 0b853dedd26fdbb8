"""
Fixtures compartilhadas
=======================
Backend Sanity em memória servido via httpx.MockTransport
"""

import asyncio
import copy
import itertools
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

# Configuração mínima antes de importar a aplicação
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SANITY_PROJECT_ID", "testproj")
os.environ.setdefault("SANITY_DATASET", "test")
os.environ.setdefault("SANITY_API_TOKEN", "test-token")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import httpx
import pytest
from fastapi.testclient import TestClient

from src.api.app.services.address_service import (
    ADDRESSES_BY_EMAIL_QUERY,
    DEFAULT_CANDIDATES_QUERY,
    AddressService,
)
from src.core.monitoring.metrics import metrics
from src.core.sanity import SanityClient
from src.main import create_app


class FakeSanityBackend:
    """
    Simula a API HTTP do Content Lake para os testes.

    Falhas são injetadas por operação; `freeze_reads()` faz as consultas
    enxergarem uma foto antiga do dataset (leitura eventualmente consistente).
    """

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.mutations: List[Dict[str, Any]] = []
        self.queries: List[Dict[str, Any]] = []

        self.fail_creates = False
        self.fail_queries = False
        self.fail_patch_ids: set = set()
        self.extra_candidate_rows: List[Dict[str, Any]] = []
        self.patch_gate: Optional[asyncio.Event] = None

        self._snapshot: Optional[Dict[str, Dict[str, Any]]] = None
        self._seed_ids = itertools.count(1)
        self._doc_ids = itertools.count(1)

    # ========== CONTROLE ==========

    def seed(self, **fields) -> Dict[str, Any]:
        """Insere um endereço diretamente no dataset"""
        doc_id = fields.pop("_id", None) or f"seed-{next(self._seed_ids)}"
        document = {"_id": doc_id, "_type": "address", "_rev": "r0", **fields}
        self.documents[doc_id] = document
        return document

    def freeze_reads(self):
        self._snapshot = copy.deepcopy(self.documents)

    def thaw_reads(self):
        self._snapshot = None

    def defaults_for(self, email: str) -> List[str]:
        return [
            doc["_id"] for doc in self.documents.values()
            if doc.get("email") == email and doc.get("default") is True
        ]

    def addresses_for(self, email: str) -> List[Dict[str, Any]]:
        return [doc for doc in self.documents.values() if doc.get("email") == email]

    @property
    def create_count(self) -> int:
        return sum(1 for m in self.mutations if "create" in m)

    @property
    def patch_mutations(self) -> List[Dict[str, Any]]:
        return [m["patch"] for m in self.mutations if "patch" in m]

    # ========== HTTP ==========

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Ponto de suspensão, como numa chamada de rede real
        await asyncio.sleep(0)

        parts = request.url.path.strip("/").split("/")
        # v{versão}/data/{endpoint}/{dataset}[/{id}]
        endpoint = parts[2]

        if endpoint == "mutate":
            return await self._handle_mutate(request)
        if endpoint == "query":
            return self._handle_query(request)
        if endpoint == "doc":
            return self._handle_doc(parts[4])
        return httpx.Response(404, json={"error": {"description": "unknown endpoint"}})

    async def _handle_mutate(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        results = []

        for mutation in body["mutations"]:
            self.mutations.append(mutation)

            if "create" in mutation:
                if self.fail_creates:
                    return httpx.Response(500, json={"error": {"description": "create failed"}})
                document = dict(mutation["create"])
                document.setdefault("_id", f"addr-{next(self._doc_ids)}")
                document["_rev"] = "r1"
                document["_createdAt"] = "2024-01-01T00:00:00Z"
                document["_updatedAt"] = "2024-01-01T00:00:00Z"
                self.documents[document["_id"]] = document
                results.append({"id": document["_id"], "operation": "create", "document": document})

            elif "patch" in mutation:
                patch = mutation["patch"]
                doc_id = patch["id"]
                if self.patch_gate is not None:
                    await self.patch_gate.wait()
                if doc_id in self.fail_patch_ids:
                    return httpx.Response(500, json={"error": {"description": f"patch {doc_id} failed"}})
                if doc_id not in self.documents:
                    return httpx.Response(409, json={"error": {"description": "document not found"}})
                self.documents[doc_id].update(patch.get("set", {}))
                results.append({"id": doc_id, "operation": "update", "document": self.documents[doc_id]})

        return httpx.Response(200, json={"transactionId": "tx-1", "results": results})

    def _handle_query(self, request: httpx.Request) -> httpx.Response:
        if self.fail_queries:
            return httpx.Response(503, json={"error": {"description": "query failed"}})

        query = request.url.params["query"]
        params = {
            key[1:]: json.loads(value)
            for key, value in request.url.params.items()
            if key.startswith("$")
        }
        self.queries.append({"query": query, "params": params})

        view = self._snapshot if self._snapshot is not None else self.documents
        addresses = [
            doc for doc in view.values()
            if doc.get("_type") == "address" and doc.get("email") == params.get("email")
        ]

        if query == DEFAULT_CANDIDATES_QUERY:
            result = [
                {"_id": doc["_id"]} for doc in addresses
                if doc["_id"] != params.get("id") and doc.get("default") is True
            ]
            result.extend(self.extra_candidate_rows)
        elif query == ADDRESSES_BY_EMAIL_QUERY:
            result = sorted(addresses, key=lambda doc: str(doc.get("createdAt") or ""), reverse=True)
        else:
            return httpx.Response(400, json={"error": {"description": "unsupported query"}})

        return httpx.Response(200, json={"ms": 1, "query": query, "result": result})

    def _handle_doc(self, doc_id: str) -> httpx.Response:
        document = self.documents.get(doc_id)
        return httpx.Response(200, json={"documents": [document] if document else []})


class StepClock:
    """Relógio determinístico: cada chamada avança um segundo"""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        moment = self.current
        self.current = self.current + timedelta(seconds=1)
        return moment


# ═══════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset_metrics()
    yield


@pytest.fixture
def backend():
    return FakeSanityBackend()


@pytest.fixture
def sanity_client(backend):
    return SanityClient(
        project_id="testproj",
        dataset="test",
        token="test-token",
        api_version="2024-01-01",
        transport=backend.transport(),
    )


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def address_service(sanity_client, clock):
    return AddressService(sanity_client, clock=clock)


@pytest.fixture
def api_client(sanity_client, clock):
    app = create_app(sanity_client=sanity_client)
    with TestClient(app) as client:
        # O lifespan já criou o service; troca pelo de relógio determinístico
        app.state.address_service = AddressService(sanity_client, clock=clock)
        yield client
