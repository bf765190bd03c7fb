"""
Shared fixtures: a file-backed SQLite database per test, a seeded template
catalog and a graph builder for renderer tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from modules.generation.config import GenerationConfig
from modules.generation.model import TemplateGraph
from modules.generation.renderers import ContentRenderer
from modules.generation.services import GenerationService
from modules.generation.storage import InMemoryContentStore
from modules.generation.worker import JobPoller
from src.database.connection import build_engine, build_session_maker, create_tables, get_session
from src.database.models import (
    DocumentTemplate,
    Environment,
    EnvironmentActivation,
    TemplateVariant,
    TemplateVersion,
    Tenant,
    ThemeRecord,
)

TENANT_ID = "acme"
TEMPLATE_ID = "invoice"


class GraphBuilder:
    """
    Builds template graph documents.

    Every node added under a parent lands in the parent's slot of the given
    name, created on first use.
    """

    def __init__(self, root_type: str = "root", root_styles: Optional[Dict[str, Any]] = None):
        self.nodes: Dict[str, Dict[str, Any]] = {
            "root": {"id": "root", "type": root_type, "slotIds": [], "styles": root_styles or {}, "props": {}},
        }
        self.slots: Dict[str, Dict[str, Any]] = {}

    def add(
        self,
        node_id: str,
        node_type: str,
        parent: str = "root",
        slot: str = "children",
        props: Optional[Dict[str, Any]] = None,
        styles: Optional[Dict[str, Any]] = None,
        style_preset: Optional[str] = None,
    ) -> "GraphBuilder":
        self.nodes[node_id] = {
            "id": node_id,
            "type": node_type,
            "slotIds": [],
            "styles": styles or {},
            "props": props or {},
        }
        if style_preset:
            self.nodes[node_id]["stylePreset"] = style_preset
        self.slot(parent, slot)["childNodeIds"].append(node_id)
        return self

    def text(self, node_id: str, content: Any, parent: str = "root", slot: str = "children", **kwargs) -> "GraphBuilder":
        return self.add(node_id, "text", parent=parent, slot=slot, props={"content": content}, **kwargs)

    def slot(self, node_id: str, name: str) -> Dict[str, Any]:
        slot_id = f"{node_id}-{name}"
        if slot_id not in self.slots:
            self.slots[slot_id] = {"id": slot_id, "name": name, "nodeId": node_id, "childNodeIds": []}
            self.nodes[node_id]["slotIds"].append(slot_id)
        return self.slots[slot_id]

    def build(self, **extra) -> Dict[str, Any]:
        return {"root": "root", "nodes": self.nodes, "slots": self.slots, **extra}

    def graph(self, **extra) -> TemplateGraph:
        return TemplateGraph.from_dict(self.build(**extra))


def hello_graph(**extra) -> Dict[str, Any]:
    return GraphBuilder().text("greeting", "Hello {{name}}").build(**extra)


def failing_graph() -> Dict[str, Any]:
    content = {
        "type": "doc",
        "content": [{
            "type": "paragraph",
            "content": [{"type": "expression", "attrs": {"expression": "1 / 0", "language": "python"}}],
        }],
    }
    return GraphBuilder().text("broken", content).build()


@pytest.fixture
def graph_builder():
    return GraphBuilder


@pytest.fixture
def renderer() -> ContentRenderer:
    return ContentRenderer()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'docgen.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


def _at(offset_seconds: int) -> datetime:
    return datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=offset_seconds)


@pytest_asyncio.fixture
async def catalog(session_maker) -> Dict[str, Any]:
    """
    Seed one tenant with an invoice template.

    Variants (creation order): default (language=en, default), dutch
    (language=nl, brand=x), english-brand (language=en, brand=x).
    Environment "prod" activates v1 for the default variant.
    """
    rows: List[Any] = [
        Tenant(id=TENANT_ID, name="Acme", default_theme_id="tenant-theme"),
        Tenant(id="other", name="Other"),
        ThemeRecord(
            id="tenant-theme",
            tenant_id=TENANT_ID,
            name="Tenant",
            document_styles={"fontSize": "10pt", "color": "#111111"},
            block_style_presets={},
        ),
        ThemeRecord(
            id="template-theme",
            tenant_id=TENANT_ID,
            name="Template",
            document_styles={"fontSize": "12pt"},
            block_style_presets={},
        ),
        DocumentTemplate(id=TEMPLATE_ID, tenant_id=TENANT_ID, name="Invoice"),
        TemplateVariant(id="default", tenant_id=TENANT_ID, template_id=TEMPLATE_ID,
                        attributes={"language": "en"}, is_default=True, created_at=_at(0)),
        TemplateVariant(id="dutch", tenant_id=TENANT_ID, template_id=TEMPLATE_ID,
                        attributes={"language": "nl", "brand": "x"}, created_at=_at(1)),
        TemplateVariant(id="english-brand", tenant_id=TENANT_ID, template_id=TEMPLATE_ID,
                        attributes={"language": "en", "brand": "x"}, created_at=_at(2)),
        TemplateVersion(id="v1", tenant_id=TENANT_ID, template_id=TEMPLATE_ID, variant_id="default",
                        version_number=1, template_model=hello_graph(), status="published"),
        TemplateVersion(id="v1-nl", tenant_id=TENANT_ID, template_id=TEMPLATE_ID, variant_id="dutch",
                        version_number=1, template_model=GraphBuilder().text("greeting", "Hallo {{name}}").build(),
                        status="published"),
        TemplateVersion(id="broken", tenant_id=TENANT_ID, template_id=TEMPLATE_ID, variant_id="default",
                        version_number=2, template_model=failing_graph(), status="draft"),
        Environment(id="prod", tenant_id=TENANT_ID, name="Production"),
        Environment(id="staging", tenant_id=TENANT_ID, name="Staging"),
    ]
    async with get_session(session_maker) as session:
        session.add_all(rows)
        await session.flush()
        session.add(EnvironmentActivation(environment_id="prod", variant_id="default",
                                          tenant_id=TENANT_ID, version_id="v1"))
    return {"tenant_id": TENANT_ID, "template_id": TEMPLATE_ID}


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def generation_config() -> GenerationConfig:
    return GenerationConfig(
        poll_interval_ms=50,
        max_concurrent_jobs=2,
        adaptive_batch_enabled=False,
        instance_id="test-worker",
        max_render_nodes=10_000,
    )


@pytest.fixture
def service(content_store, session_maker, catalog) -> GenerationService:
    return GenerationService(content_store=content_store, session_maker=session_maker)


@pytest.fixture
def poller(content_store, session_maker, generation_config, catalog) -> JobPoller:
    return JobPoller(content_store, session_maker=session_maker, config=generation_config)
