from billify.domain.pdf_templates import (
    INVOICE_TEMPLATES, TEMPLATE_GENERATORS, generate_default_template, get_generator, render_invoice_html,
)
from billify.infrastructure.images.logo import LogoResolver

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgo="


class TestCatalog:
    def test_every_catalog_entry_has_a_generator(self):
        assert {t.id for t in INVOICE_TEMPLATES} == set(TEMPLATE_GENERATORS)

    def test_unknown_id_falls_back_to_default(self):
        assert get_generator("fancy") is generate_default_template
        assert get_generator(None) is generate_default_template


class TestDefaultTemplate:
    async def test_inter_state_invoice(self, invoice_data):
        html = await render_invoice_html("default", invoice_data, LogoResolver())
        assert "021024INV0001" in html
        assert "02/10/2024" in html
        assert "IGST @18%" in html
        assert "1800.00" in html
        assert "11800.00" in html
        assert "CGST" not in html
        assert "Rupees Eleven Thousand Eight Hundred Only" in html
        assert "Consulting Services" in html

    async def test_intra_state_invoice(self, invoice_data):
        invoice_data.client.state = "Maharashtra"
        html = await render_invoice_html("default", invoice_data, LogoResolver())
        assert "CGST @9%" in html
        assert "SGST @9%" in html
        assert "900.00" in html
        assert "IGST" not in html

    async def test_placeholder_logo_is_hidden(self, invoice_data):
        html = await render_invoice_html("default", invoice_data, LogoResolver())
        assert "Company Logo" not in html

    async def test_inline_logo_is_shown(self, invoice_data):
        invoice_data.company.logo_url = PNG_DATA_URL
        html = await render_invoice_html("default", invoice_data, LogoResolver())
        assert f'src="{PNG_DATA_URL}"' in html

    async def test_values_are_escaped(self, invoice_data):
        invoice_data.client.name = "<script>alert(1)</script>"
        html = await render_invoice_html("default", invoice_data, LogoResolver())
        assert "<script>alert" not in html
        assert "&lt;script&gt;" in html


class TestExtrapeTemplate:
    async def test_renders_parties_and_bank(self, invoice_data):
        html = await render_invoice_html("Extrape", invoice_data, LogoResolver())
        assert "Invoice From" in html
        assert "Acme Corporation" in html
        assert "ABC Enterprises" in html
        assert "State Bank of India" in html
        assert "SBIN0001234" in html
        assert "998311" in html

    async def test_unknown_template_renders_default(self, invoice_data):
        html = await render_invoice_html("fancy", invoice_data, LogoResolver())
        assert "Authorised Signatory" in html
