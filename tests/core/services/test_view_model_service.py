from xmledit_toolkit.core.addressing import AddressingScheme
from xmledit_toolkit.core.document import DocumentModel
from xmledit_toolkit.core.services.view_model_service import build_edit_model, build_outline


def test_outline_mirrors_document(document):
    outline = build_outline(document.root)
    assert outline.label == "Form (form_main)"
    assert [c.label for c in outline.children[:3]] == [
        "Button (btn_ok)", "Button (btn_cancel)", "Panel (panel_1)",
    ]
    panel = outline.children[2]
    assert [c.tag for c in panel.children] == ["Item", "Item"]
    assert len(list(outline.walk())) == len(document.identities())


def test_outline_of_nothing():
    assert build_outline(None) is None


def test_edit_model_rows_are_sorted_union(document):
    model = build_edit_model(document, "btn_cancel")
    names = [r.name for r in model.rows]
    assert names == sorted(names)
    assert {"label", "name", "x", "kind", "action"} <= set(names)
    assert model.row("label").value == "Cancel"
    assert model.row("x").value == ""
    assert model.row("name").required
    assert not model.row("label").required
    assert not model.is_container
    assert model.row("value") is None


def test_edit_model_content_row_for_text(document):
    model = build_edit_model(document, "item_1")
    row = model.row("value")
    assert row.is_content
    assert row.value == "Maennlich"
    assert not row.binary
    assert model.content == "Maennlich"


def test_edit_model_binary_row_even_when_empty(document):
    row = build_edit_model(document, "pdf_1").row("value")
    assert row.binary
    assert row.value == ""


def test_edit_model_container_info(document):
    model = build_edit_model(document, "form_main")
    assert model.is_container
    assert model.is_root
    assert model.allowed_child_types == ("Button", "Panel", "PDF", "Image")
    assert model.children[0] == ("btn_ok", "Button")


def test_edit_model_skips_namespace_and_id(introspector):
    doc = DocumentModel(introspector, AddressingScheme())
    doc.load_text('<Form xmlns:x="urn:x" name="f" id="legacy" x:extra="1"/>')
    names = [r.name for r in build_edit_model(doc, "f").rows]
    assert "id" not in names
    assert "extra" in names
    assert not any(n.startswith("xmlns") for n in names)


def test_edit_model_missing(document):
    assert build_edit_model(document, "nope") is None
