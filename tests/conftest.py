"""Shared pytest fixtures.

Provides:
- ``gateway``: fresh OfflineGateway seeded from the bundled dataset
- ``store``: empty EntityStore
- ``workspace``: Workspace over ``gateway`` with students/modules/barangays loaded
- ``master_admin`` / ``poblacion_admin`` / ``unassigned_admin``: actors
"""

from __future__ import annotations

import pytest

from models.entities import Activity, Actor, Role
from services.entity_store import EntityStore
from services.gateway import OfflineGateway
from services.mutation_coordinator import Notifier
from services.workspace import Workspace


@pytest.fixture
def gateway() -> OfflineGateway:
    return OfflineGateway()


@pytest.fixture
def store() -> EntityStore:
    return EntityStore()


@pytest.fixture
async def workspace(gateway: OfflineGateway) -> Workspace:
    ws = Workspace(gateway, notifier=Notifier(ttl=60), merge_bundled_modules=False)
    await ws.load()
    yield ws
    await ws.close()


@pytest.fixture
def master_admin() -> Actor:
    return Actor(role=Role.MASTER_ADMIN)


@pytest.fixture
def poblacion_admin() -> Actor:
    return Actor(role=Role.ADMIN, assigned_barangay_id="brgy-poblacion")


@pytest.fixture
def unassigned_admin() -> Actor:
    return Actor(role=Role.ADMIN)


@pytest.fixture
def quiz_activity() -> Activity:
    return Activity(type="Quiz", name="Quiz 1", score=8, total=10, date="2025-09-01")
