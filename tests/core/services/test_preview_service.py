from lxml import etree as ET

from xmledit_toolkit.core.preview import xml_compiler
from xmledit_toolkit.core.services.mutation_service import MutationService
from xmledit_toolkit.core.services.preview_service import (
    PreviewService,
    StylesheetManager,
    VisualizationBridge,
)

SVG_NS = "http://www.w3.org/2000/svg"


def _svg(text):
    root = ET.fromstring(text.encode("utf-8"))
    assert root.tag == f"{{{SVG_NS}}}svg"
    return root


class TestStylesheetManager:
    def test_packaged_default_is_active(self):
        manager = StylesheetManager()
        assert manager.active_source == "default"
        assert isinstance(manager.get_transform(), ET.XSLT)

    def test_custom_file_takes_priority(self, stylesheet_dir):
        manager = StylesheetManager()
        assert manager.load_custom(stylesheet_dir / "labels.xslt")
        assert manager.active_source.startswith("custom:")
        manager.clear_custom()
        assert manager.active_source == "default"

    def test_missing_or_directory_custom_is_rejected(self, stylesheet_dir, tmp_path):
        manager = StylesheetManager()
        assert manager.load_custom(stylesheet_dir / "labels.xslt")
        assert not manager.load_custom(tmp_path / "missing.xslt")
        assert not manager.load_custom(tmp_path)
        assert manager.custom_path == stylesheet_dir / "labels.xslt"

    def test_invalid_custom_is_rejected(self, tmp_path):
        bad = tmp_path / "bad.xslt"
        bad.write_text("<xsl:stylesheet", encoding="utf-8")
        manager = StylesheetManager()
        assert not manager.load_custom(bad)
        assert manager.active_source == "default"

    def test_fallback_when_default_missing(self, tmp_path):
        manager = StylesheetManager(default_path=tmp_path / "gone.xslt")
        assert manager.active_source == "fallback"
        result = manager.get_transform()(ET.ElementTree(ET.Element("Form")))
        assert "ERROR: Visualization file missing." in str(result)


class TestXmlCompiler:
    def test_get_raw_node_xml(self, document):
        xml = xml_compiler.get_raw_node_xml(document.root, "panel_1")
        assert xml.startswith('<Panel name="panel_1"')
        assert xml_compiler.get_raw_node_xml(document.root, "nope") is None

    def test_render_does_not_touch_live_tree(self, document):
        before = document.serialize()
        xml_compiler.render_svg(document.find("btn_ok"), StylesheetManager().get_transform())
        assert document.serialize() == before


class TestPreviewService:
    def test_render_root_with_default_stylesheet(self, document):
        result = PreviewService(document).render()
        assert result.success
        svg = _svg(result.content)
        labels = [t.text for t in svg.iter(f"{{{SVG_NS}}}text")]
        assert "Form (form_main)" in labels
        assert "Button (btn_ok)" in labels
        assert result.details["stylesheet"] == "default"

    def test_render_uses_geometry_attributes(self, document):
        svg = _svg(PreviewService(document).render("btn_ok").content)
        rect = svg.find(f".//{{{SVG_NS}}}rect")
        assert (rect.get("x"), rect.get("y"), rect.get("width"), rect.get("height")) == ("10", "20", "80", "30")

    def test_render_subtree_only(self, document):
        svg = _svg(PreviewService(document).render("panel_1").content)
        identities = [g.get("data-identity") for g in svg.iter(f"{{{SVG_NS}}}g")]
        assert identities[:2] == ["panel_1", "item_1"]
        assert "form_main" not in identities

    def test_render_with_custom_stylesheet(self, document, stylesheet_dir):
        stylesheets = StylesheetManager()
        stylesheets.load_custom(stylesheet_dir / "labels.xslt")
        result = PreviewService(document, stylesheets).render("panel_1")
        svg = _svg(result.content)
        assert svg.get("class") == "labels"
        assert result.details["stylesheet"].startswith("custom:")

    def test_unknown_identity(self, document):
        result = PreviewService(document).render("nope")
        assert not result.success
        assert result.details["reason"] == "not_found"

    def test_no_document(self, empty_document):
        result = PreviewService(empty_document).render()
        assert result.details["reason"] == "no_document"

    def test_xslt_runtime_error_is_reported(self, document, stylesheet_dir):
        stylesheets = StylesheetManager()
        assert stylesheets.load_custom(stylesheet_dir / "failing.xslt")
        result = PreviewService(document, stylesheets).render()
        assert not result.success
        assert result.details["reason"] == "xslt_error"

    def test_get_raw_xml(self, document):
        result = PreviewService(document).get_raw_xml("item_1")
        assert result.success
        assert "Maennlich" in result.content


class TestVisualizationBridge:
    def test_inbound_request_then_outbound_render(self, document):
        bridge = VisualizationBridge(MutationService(document), PreviewService(document))
        result = bridge.handle_request(
            '{"action": "UPDATE", "originalName": "btn_ok", "attributes": {"label": "Send"}}'
        )
        assert result.success
        assert document.find("btn_ok").get("label") == "Send"
        assert bridge.render("btn_ok").success

    def test_inbound_garbage_is_dropped(self, document):
        bridge = VisualizationBridge(MutationService(document), PreviewService(document))
        assert not bridge.handle_request("{").success
