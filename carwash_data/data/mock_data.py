"""
Static mock data source.

Loads the bundled JSON fixtures once into memory. A single store is shared by all
mock repositories built by one factory, so writes made through one repository
are visible to the others (and to the Hybrid decorator's reads).
"""

import asyncio
import json
import threading
from pathlib import Path
from typing import Dict, List, Optional
from uuid import uuid4

import structlog

from ..domain.entities import Client, ClientAddress, PaymentMethod, Service, Vehicle

logger = structlog.get_logger(__name__)

DATA_DIR = Path(__file__).parent
SERVICES_FILE = DATA_DIR / "services.json"
CLIENTS_FILE = DATA_DIR / "clients.json"


def _read_json(path: Path) -> dict:
    with path.open(encoding="utf-8") as f:
        return json.load(f)


class MockDataStore:
    """
    In-memory records backing the mock repositories.

    Attributes:
        services: Mutable list of services
        clients: Mutable list of clients
        vehicles: Vehicles of all clients
        payment_methods: Payment methods of all clients
        addresses: Addresses of all clients
        booking_counts: Bookings per service id
        delay_ms: Artificial latency applied by ``simulate_delay``
        lock: Guards mutations of the record lists
    """

    def __init__(
        self,
        services: Optional[List[Service]] = None,
        clients: Optional[List[Client]] = None,
        booking_counts: Optional[Dict[str, int]] = None,
        delay_ms: int = 0,
        vehicles: Optional[List[Vehicle]] = None,
        payment_methods: Optional[List[PaymentMethod]] = None,
        addresses: Optional[List[ClientAddress]] = None,
    ):
        self.services: List[Service] = list(services or [])
        self.clients: List[Client] = list(clients or [])
        self.vehicles: List[Vehicle] = list(vehicles or [])
        self.payment_methods: List[PaymentMethod] = list(payment_methods or [])
        self.addresses: List[ClientAddress] = list(addresses or [])
        self.booking_counts: Dict[str, int] = dict(booking_counts or {})
        self.delay_ms = delay_ms
        self.lock = threading.RLock()

    @classmethod
    def load(cls, delay_ms: int = 0) -> "MockDataStore":
        """Build a store from the bundled fixtures."""
        services_doc = _read_json(SERVICES_FILE)
        clients_doc = _read_json(CLIENTS_FILE)

        store = cls(
            services=[Service.model_validate(raw) for raw in services_doc.get("services", [])],
            clients=[Client.model_validate(raw) for raw in clients_doc.get("clients", [])],
            booking_counts={
                str(key): int(value)
                for key, value in services_doc.get("bookingCounts", {}).items()
            },
            delay_ms=delay_ms,
            vehicles=[Vehicle.model_validate(raw) for raw in clients_doc.get("vehicles", [])],
            payment_methods=[
                PaymentMethod.model_validate(raw) for raw in clients_doc.get("paymentMethods", [])
            ],
            addresses=[ClientAddress.model_validate(raw) for raw in clients_doc.get("addresses", [])],
        )
        logger.info(
            "Loaded mock data",
            services=len(store.services),
            clients=len(store.clients),
            vehicles=len(store.vehicles),
            payment_methods=len(store.payment_methods),
            addresses=len(store.addresses),
        )
        return store

    async def simulate_delay(self) -> None:
        if self.delay_ms > 0:
            await asyncio.sleep(self.delay_ms / 1000)

    @staticmethod
    def next_id(prefix: str) -> str:
        return f"{prefix}-{uuid4().hex[:12]}"
