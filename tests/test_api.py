import base64
import io
import time

import httpx
import pytest_asyncio
from PIL import Image

from billify.config.settings import settings
from billify.delivery.api import editor as editor_api
from billify.delivery.api.deps import Services
from billify.domain.document_pipeline import DocumentPipeline
from billify.domain.record_service import build_record_services
from billify.domain.settings_service import SettingsService
from billify.domain.template_service import TemplateService
from billify.main import create_app

from conftest import FakeNotifier, FakeRasterizer, FakeStorage

API = settings.API_V1_STR
AUTH = (settings.BASIC_AUTH_USERNAME, settings.BASIC_AUTH_PASSWORD)


@pytest_asyncio.fixture
async def client(session_factory, tmp_path):
    app = create_app()
    app.state.services = Services(
        templates=TemplateService(session_factory),
        settings=SettingsService(session_factory),
        records=build_record_services(session_factory),
        pipeline=DocumentPipeline(FakeRasterizer(), storage=FakeStorage(), notifier=FakeNotifier(),
                                  output_dir=str(tmp_path)),
        session_factory=session_factory,
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test", auth=AUTH) as c:
        yield c


async def _invoice(client) -> str:
    await client.post(f"{API}/companies", json={"company_name": "Acme Corporation", "state": "Maharashtra"})
    party = (await client.post(f"{API}/clients", json={
        "name": "ABC Enterprises", "state": "Delhi", "email": "billing@abc.example",
    })).json()
    response = await client.post(f"{API}/invoices", json={
        "invoice_number": "021024INV0001",
        "client_id": party["id"],
        "invoice_date": "2024-10-02",
        "items": [{"item_name": "Consulting Services", "unit_price": 10000}],
    })
    assert response.status_code == 201
    return response.json()["id"]


# ─────────────────────────────────────────────────────────
# Service surface
# ─────────────────────────────────────────────────────────

class TestService:
    async def test_health(self, client):
        body = (await client.get("/health")).json()
        assert body["status"] == "ok"
        assert body["services_loaded"]

    async def test_requires_credentials(self, client):
        assert (await client.get(f"{API}/templates", auth=None)).status_code == 401
        assert (await client.get(f"{API}/templates", auth=("admin", "wrong"))).status_code == 401


# ─────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────

class TestTemplatesApi:
    async def test_component_palette(self, client):
        palette = (await client.get(f"{API}/templates/components")).json()
        assert set(palette) == {"header", "content", "table", "footer", "layout"}
        assert palette["header"][0]["defaultSize"] == {"width": 100, "height": 100}

    async def test_catalog(self, client):
        ids = [t["id"] for t in (await client.get(f"{API}/templates/catalog")).json()]
        assert ids == ["default", "Extrape"]

    async def test_crud(self, client):
        created = await client.post(f"{API}/templates", json={"name": "Mine", "description": "first"})
        assert created.status_code == 201
        template = created.json()
        assert template["layout"]["pageSize"] == "A4"
        assert template["layout"]["components"] == []

        url = f"{API}/templates/{template['id']}"
        assert (await client.get(url)).json()["name"] == "Mine"

        renamed = await client.put(url, json={"name": "Renamed"})
        assert renamed.json()["name"] == "Renamed"
        assert renamed.json()["description"] == "first"

        assert len((await client.get(f"{API}/templates")).json()) == 1
        assert (await client.delete(url)).status_code == 204
        assert (await client.get(url)).status_code == 404

    async def test_default_and_duplicate(self, client):
        template = (await client.post(f"{API}/templates", json={"name": "Mine"})).json()
        assert (await client.get(f"{API}/templates/default")).status_code == 404

        await client.post(f"{API}/templates/{template['id']}/default")
        assert (await client.get(f"{API}/templates/default")).json()["id"] == template["id"]

        copy = await client.post(f"{API}/templates/{template['id']}/duplicate", json={"name": "Copy"})
        assert copy.status_code == 201
        assert not copy.json()["is_default"]

    async def test_templates_are_scoped_by_user_header(self, client):
        template = (await client.post(f"{API}/templates", json={"name": "Mine"})).json()
        other = {"X-User-Id": "someone-else"}
        assert (await client.get(f"{API}/templates/{template['id']}", headers=other)).status_code == 404
        assert (await client.get(f"{API}/templates", headers=other)).json() == []

    async def test_foreign_default_keeps_current(self, client):
        mine = (await client.post(f"{API}/templates", json={"name": "Mine"})).json()
        await client.post(f"{API}/templates/{mine['id']}/default")
        theirs = (await client.post(f"{API}/templates", json={"name": "Theirs"},
                                    headers={"X-User-Id": "someone-else"})).json()

        assert (await client.post(f"{API}/templates/{theirs['id']}/default")).status_code == 404
        assert (await client.get(f"{API}/templates/default")).json()["id"] == mine["id"]

    async def test_empty_name(self, client):
        assert (await client.post(f"{API}/templates", json={"name": "  "})).status_code == 422


# ─────────────────────────────────────────────────────────
# Editor sessions
# ─────────────────────────────────────────────────────────

class TestEditorApi:
    async def test_design_and_save(self, client):
        created = await client.post(f"{API}/editor/sessions", json={"name": "Designed"})
        assert created.status_code == 201
        session = created.json()
        base = f"{API}/editor/sessions/{session['session_id']}"
        assert session["history_length"] == 1
        assert not session["can_undo"]

        dropped = (await client.post(f"{base}/components", json={"type": "heading", "x": 103, "y": 98})).json()
        component = dropped["component"]
        assert component["position"] == {"x": 100, "y": 100}
        assert dropped["can_undo"]

        await client.post(f"{base}/pointer", json={"action": "down", "x": 110, "y": 110})
        moved = (await client.post(f"{base}/pointer", json={"action": "move", "x": 155, "y": 130})).json()
        assert moved["gesture"] == "dragging"
        assert moved["update"] == {"position": {"x": 150, "y": 120}}
        released = (await client.post(f"{base}/pointer", json={"action": "up"})).json()
        assert released["gesture"] == "idle"
        assert released["layout"]["components"][0]["position"] == {"x": 150, "y": 120}

        undone = (await client.post(f"{base}/undo")).json()
        assert undone["changed"]
        assert undone["layout"]["components"][0]["position"] == {"x": 100, "y": 100}
        redone = (await client.post(f"{base}/redo")).json()
        assert redone["layout"]["components"][0]["position"] == {"x": 150, "y": 120}

        patched = await client.patch(f"{base}/components/{component['id']}", json={"content": "TAX INVOICE"})
        assert patched.json()["component"]["content"] == "TAX INVOICE"

        saved = (await client.post(f"{base}/save")).json()
        assert saved["template"]["name"] == "Designed"
        assert len((await client.get(f"{API}/templates")).json()) == 1

        preview = await client.get(f"{base}/preview")
        assert preview.headers["content-type"].startswith("text/html")
        assert "TAX INVOICE" in preview.text

        assert (await client.delete(base)).status_code == 204
        assert (await client.get(base)).status_code == 404

    async def test_open_saved_template(self, client):
        template = (await client.post(f"{API}/templates", json={"name": "Saved"})).json()
        session = (await client.post(f"{API}/editor/sessions", json={"template_id": template["id"]})).json()
        assert session["layout"]["name"] == "Saved"

        missing = await client.post(f"{API}/editor/sessions", json={"template_id": "nope"})
        assert missing.status_code == 404

    async def test_select_reports_editable_fields(self, client):
        session = (await client.post(f"{API}/editor/sessions", json={"name": "S"})).json()
        base = f"{API}/editor/sessions/{session['session_id']}"
        component = (await client.post(f"{base}/components", json={"type": "spacer"})).json()["component"]

        selected = (await client.post(f"{base}/select", json={"component_id": component["id"]})).json()
        assert selected["selected_id"] == component["id"]
        assert not selected["editable"]["content"]

        rejected = await client.patch(f"{base}/components/{component['id']}", json={"content": "x"})
        assert rejected.status_code == 422

    async def test_view_settings(self, client):
        session = (await client.post(f"{API}/editor/sessions", json={"name": "S"})).json()
        base = f"{API}/editor/sessions/{session['session_id']}"
        view = (await client.put(f"{base}/view", json={"zoom": 50, "grid_snap": False})).json()
        assert view["zoom"] == 50
        assert not view["grid_snap"]
        assert (await client.put(f"{base}/view", json={"zoom": 0})).status_code == 422

    async def test_sessions_are_private(self, client):
        session = (await client.post(f"{API}/editor/sessions", json={"name": "S"})).json()
        url = f"{API}/editor/sessions/{session['session_id']}"
        assert (await client.get(url, headers={"X-User-Id": "someone-else"})).status_code == 404

    async def test_idle_sessions_expire(self, client, monkeypatch):
        session = (await client.post(f"{API}/editor/sessions", json={"name": "S"})).json()
        url = f"{API}/editor/sessions/{session['session_id']}"
        started = time.monotonic()

        monkeypatch.setattr(editor_api, "_now", lambda: started + settings.EDITOR_SESSION_TTL_SECONDS / 2)
        assert (await client.get(url)).status_code == 200

        monkeypatch.setattr(editor_api, "_now", lambda: started + settings.EDITOR_SESSION_TTL_SECONDS * 2)
        assert (await client.get(url)).status_code == 404

    async def test_session_cap_closes_least_recent(self, client, monkeypatch):
        monkeypatch.setattr(settings, "EDITOR_SESSIONS_PER_USER", 2)
        ids = []
        for _ in range(3):
            ids.append((await client.post(f"{API}/editor/sessions", json={"name": "S"})).json()["session_id"])

        assert (await client.get(f"{API}/editor/sessions/{ids[0]}")).status_code == 404
        for session_id in ids[1:]:
            assert (await client.get(f"{API}/editor/sessions/{session_id}")).status_code == 200
        other = await client.post(f"{API}/editor/sessions", json={"name": "S"}, headers={"X-User-Id": "someone-else"})
        assert other.status_code == 201
        assert (await client.get(f"{API}/editor/sessions/{ids[2]}")).status_code == 200

    async def test_builder_disabled(self, client, monkeypatch):
        monkeypatch.setattr(settings, "ENABLE_TEMPLATE_BUILDER", False)
        assert (await client.post(f"{API}/editor/sessions", json={"name": "S"})).status_code == 403


# ─────────────────────────────────────────────────────────
# Records, settings and PDF generation
# ─────────────────────────────────────────────────────────

class TestRecordsApi:
    async def test_crud(self, client):
        created = await client.post(f"{API}/products", json={"name": "Consulting", "unit_price": 500})
        assert created.status_code == 201
        url = f"{API}/products/{created.json()['id']}"

        updated = await client.put(url, json={"unit_price": 750})
        assert updated.json()["unit_price"] == 750
        assert updated.json()["name"] == "Consulting"

        assert len((await client.get(f"{API}/products")).json()) == 1
        assert (await client.delete(url)).status_code == 204
        assert (await client.get(url)).status_code == 404

    async def test_missing_required_field(self, client):
        assert (await client.post(f"{API}/clients", json={"city": "Pune"})).status_code == 422

    async def test_invoice_totals(self, client):
        invoice_id = await _invoice(client)
        invoice = (await client.get(f"{API}/invoices/{invoice_id}")).json()
        assert invoice["total_amount"] == 11800
        assert invoice["items"][0]["line_total"] == 10000

    async def test_invoice_cannot_reference_other_users_client(self, client):
        party = (await client.post(f"{API}/clients", json={"name": "Victim Co", "email": "ceo@victim.example"},
                                   headers={"X-User-Id": "victim"})).json()
        response = await client.post(f"{API}/invoices", json={"invoice_number": "X1", "client_id": party["id"]})
        assert response.status_code == 404

    async def test_company_logo_upload(self, client):
        buf = io.BytesIO()
        Image.new("RGB", (8, 8), "blue").save(buf, format="PNG")
        data_url = f"data:image/png;base64,{base64.b64encode(buf.getvalue()).decode('ascii')}"
        company = (await client.post(f"{API}/companies", json={"company_name": "Acme"})).json()

        response = await client.post(f"{API}/companies/{company['id']}/logo", json={"data_url": data_url})
        assert response.status_code == 200
        assert response.json()["logo_url"] == "https://res.cloudinary.com/demo/image/upload/v1/logos/logo.png"

    async def test_company_logo_rejects_garbage(self, client):
        company = (await client.post(f"{API}/companies", json={"company_name": "Acme"})).json()
        response = await client.post(f"{API}/companies/{company['id']}/logo",
                                     json={"data_url": "data:image/png;base64,AAAA"})
        assert response.status_code == 422

    async def test_next_invoice_number(self, client):
        number = (await client.post(f"{API}/invoices/number")).json()["invoice_number"]
        assert number.endswith("INV0001")
        assert len(number) == 13


class TestSettingsApi:
    async def test_get_and_patch(self, client):
        assert (await client.get(f"{API}/settings")).json()["theme"] == "light"
        patched = await client.patch(f"{API}/settings", json={"theme": "dark", "enable_s3_upload": False})
        assert patched.json()["theme"] == "dark"
        assert not patched.json()["enable_s3_upload"]

    async def test_invalid_theme(self, client):
        assert (await client.patch(f"{API}/settings", json={"theme": "blue"})).status_code == 422


class TestGenerationApi:
    async def test_generate_json(self, client):
        invoice_id = await _invoice(client)
        response = await client.post(f"{API}/invoices/{invoice_id}/pdf", json={})
        assert response.status_code == 200
        body = response.json()
        assert body["success"]
        assert body["filename"] == "Invoice-021024INV0001.pdf"
        assert body["s3_url"]
        assert body["email_sent"]
        assert "pdf_bytes" not in body

    async def test_download(self, client):
        invoice_id = await _invoice(client)
        response = await client.post(f"{API}/invoices/{invoice_id}/pdf", json={"download": True})
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="Invoice-021024INV0001.pdf"' in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    async def test_default_template_route_follows_settings(self, client):
        invoice_id = await _invoice(client)
        await client.patch(f"{API}/settings", json={"enable_s3_upload": False})
        body = (await client.post(f"{API}/invoices/{invoice_id}/pdf/default")).json()
        assert body["s3_url"] is None
        assert not body["email_sent"]

    async def test_unknown_invoice(self, client):
        response = await client.post(f"{API}/invoices/00000000-0000-0000-0000-000000000000/pdf", json={})
        assert response.status_code == 404
