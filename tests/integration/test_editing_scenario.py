"""End-to-end editing through a session: schema, document, bridge and views."""

import pytest

from xmledit_toolkit.config import ConfigManager, EditorSettings
from xmledit_toolkit.core.exceptions import DocumentParseError
from xmledit_toolkit.core.session import EditorSession


def test_form_button_scenario(session, tmp_path):
    source = tmp_path / "blank.xml"
    source.write_text("<Form/>", encoding="utf-8")
    session.open(source)

    root_identity = session.document.root.get("name")
    assert root_identity.startswith("synth_Form_")

    refreshes = []
    session.mutations.add_refresh_listener(refreshes.append)

    added = session.bridge.handle_request(
        {"action": "ADD", "parentName": root_identity, "newNodeType": "Button"}
    )
    assert added.success
    button = added.details["identity"]
    assert button
    assert len(session.document.root) == 1

    outline = session.outline()
    assert outline.children[0].label == f"Button ({button})"

    deleted = session.bridge.handle_request({"action": "DELETE", "name": button})
    assert deleted.success
    assert len(session.document.root) == 0
    assert len(refreshes) == 2


def test_open_edit_save_reopen(session, form_copy):
    session.open(form_copy)
    session.bridge.handle_request(
        '{"action": "UPDATE", "originalName": "item_1", "attributes": {"value": "Divers"}}'
    )
    session.mutations.attach_binary("pdf_1", b"%PDF-1.7")
    session.save()

    reopened = EditorSession(session.settings, session.introspector)
    reopened.open(form_copy)
    assert reopened.edit_model("item_1").content == "Divers"
    assert reopened.document.get_binary_content("pdf_1") == b"%PDF-1.7"
    assert reopened.document.validate() == []


def test_failed_open_keeps_current_document(session, form_xml_path, tmp_path):
    session.open(form_xml_path)
    broken = tmp_path / "broken.xml"
    broken.write_text("<Form>", encoding="utf-8")
    with pytest.raises(DocumentParseError):
        session.open(broken)
    assert session.document.source_path == form_xml_path
    assert session.edit_model("btn_ok") is not None


def test_new_document_then_render(session):
    root = session.new_document("Form")
    session.bridge.handle_request({"action": "ADD", "parentName": root, "newNodeType": "Panel"})
    result = session.bridge.render()
    assert result.success
    assert "Panel (synth_Panel_" in result.content


def test_create_from_configuration(tmp_path, schema_dir, stylesheet_dir):
    (tmp_path / "editor.yml").write_text(
        f"schema_directory: {schema_dir}\nstylesheet: {stylesheet_dir / 'labels.xslt'}\n",
        encoding="utf-8",
    )
    session = EditorSession.create(config=ConfigManager(user_config_dir=tmp_path))
    assert session.introspector.is_container("Form")
    assert session.stylesheets.active_source.startswith("custom:")


def test_create_with_explicit_sources_and_settings(schema_dir):
    settings = EditorSettings(identity_prefix="gen")
    session = EditorSession.create(settings, schema_sources=[schema_dir / "form.xsd"])
    root = session.new_document("Panel")
    assert root.startswith("gen_Panel_")
    assert session.introspector.allowed_children("Panel") == ("Button", "Item")


def test_create_without_schema_is_degraded(tmp_path):
    session = EditorSession.create(config=ConfigManager(user_config_dir=tmp_path / "none"))
    assert not session.introspector.available
    session.new_document("Anything")
    assert session.outline().tag == "Anything"
