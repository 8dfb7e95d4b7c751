from __future__ import annotations

import pathlib
import sys
from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy.pool import StaticPool

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_dependencies():
    from app import Config, create_app
    from backend.app.extensions import db

    return Config, create_app, db


ConfigBase, create_app, db = _load_dependencies()


class TestConfig(ConfigBase):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    CORS_ALLOWED_ORIGINS = "http://localhost"
    RATELIMIT_ENABLED = False
    FLOW_STEP_PAUSE_SECONDS = 0
    WHATSAPP_ACCESS_TOKEN = ""


class RecordingGateway:
    """Stands in for the Cloud API gateway and remembers every send."""

    def __init__(self) -> None:
        self.ok = True
        self.sent: list[dict[str, Any]] = []

    @property
    def texts(self) -> list[str]:
        return [item["text"] for item in self.sent if item["kind"] in ("text", "choices")]

    def send_text(self, phone_number_id, to, text) -> bool:
        self.sent.append({"kind": "text", "to": to, "text": text})
        return self.ok

    def send_media(self, phone_number_id, to, media_url, media_type="image", caption=None) -> bool:
        self.sent.append(
            {"kind": "media", "to": to, "url": media_url, "media_type": media_type, "text": caption}
        )
        return self.ok

    def send_choice_prompt(self, phone_number_id, to, text, choices) -> bool:
        self.sent.append({"kind": "choices", "to": to, "text": text, "choices": list(choices)})
        return self.ok


@pytest.fixture(scope="module")
def app():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def cleanup_database(app):
    yield

    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()


@pytest.fixture()
def gateway(app):
    recording = RecordingGateway()
    previous = app.extensions.get("messaging_gateway")
    app.extensions["messaging_gateway"] = recording
    yield recording
    if previous is None:
        app.extensions.pop("messaging_gateway", None)
    else:
        app.extensions["messaging_gateway"] = previous


@pytest.fixture()
def tenant(app):
    from backend.app.models.tenant import Tenant

    tenant = Tenant(name="Acme", owner_name="Ana", whatsapp_phone_number_id="1234567890")
    db.session.add(tenant)
    db.session.commit()
    return tenant


@pytest.fixture()
def contact(tenant):
    from backend.app.models.tenant import Contact

    contact = Contact(tenant_id=tenant.id, name="Maria Silva", phone="5583999991234")
    db.session.add(contact)
    db.session.commit()
    return contact


@pytest.fixture()
def make_flow(tenant) -> Callable[..., tuple[Any, dict[str, int]]]:
    """Persist a flow from ``(key, type, config)`` nodes and ``(source, target[, handle])`` edges."""

    from backend.app.flows.definitions import normalize_graph, replace_graph
    from backend.app.models.flow import Flow

    def factory(
        nodes: list[tuple[str, str, dict[str, Any]]],
        edges: list[tuple[str, ...]],
        *,
        name: str = "Flow",
        keywords: list[str] | None = None,
        is_default: bool = False,
        is_active: bool = True,
    ):
        graph = {
            "nodes": [{"key": key, "type": kind, "config": config} for key, kind, config in nodes],
            "edges": [
                {"source": edge[0], "target": edge[1], "handle": edge[2] if len(edge) > 2 else None}
                for edge in edges
            ],
        }
        normalized_nodes, normalized_edges = normalize_graph(graph)
        flow = Flow(
            tenant_id=tenant.id,
            name=name,
            trigger_keywords=keywords or [],
            is_default=is_default,
            is_active=is_active,
        )
        db.session.add(flow)
        db.session.flush()
        ids = replace_graph(flow, normalized_nodes, normalized_edges)
        db.session.commit()
        return flow, ids

    return factory


@pytest.fixture()
def log_actions() -> Callable[[int], list[str]]:
    from backend.app.models.execution import ExecutionLog

    def collect(execution_id: int) -> list[str]:
        entries = (
            ExecutionLog.query.filter_by(execution_id=execution_id)
            .order_by(ExecutionLog.id.asc())
            .all()
        )
        return [entry.action for entry in entries]

    return collect
