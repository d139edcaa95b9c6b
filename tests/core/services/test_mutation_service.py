import json

import pytest

from xmledit_toolkit.core.exceptions import AddressingViolation, DocumentParseError, ProtocolError
from xmledit_toolkit.core.services.mutation_service import (
    MutationAction,
    MutationRequest,
    MutationService,
    OperationResult,
)


class TestRequestDecoding:
    def test_original_bridge_field_names(self):
        req = MutationRequest.from_payload(
            '{"action": "ADD", "parentName": "form_main", "newNodeType": "Button"}'
        )
        assert req.action is MutationAction.ADD
        assert req.parent == "form_main"
        assert req.new_type == "Button"

    def test_update_uses_original_name_as_target(self):
        req = MutationRequest.from_payload({
            "action": "UPDATE",
            "originalName": "btn_ok",
            "attributes": {"name": "btn_go", "x": 10, "visible": True, "note": None},
        })
        assert req.target == "btn_ok"
        assert req.attributes == {"name": "btn_go", "x": "10", "visible": "true", "note": ""}

    def test_delete_uses_name_as_target(self):
        req = MutationRequest.from_payload(b'{"action": "delete", "name": "btn_ok"}')
        assert req.action is MutationAction.DELETE
        assert req.target == "btn_ok"

    def test_preferred_spelling_wins(self):
        req = MutationRequest.from_payload({"action": "DUPLICATE", "target": "a", "name": "b"})
        assert req.target == "a"

    @pytest.mark.parametrize("payload", [
        "not json",
        "[1, 2]",
        '{"name": "x"}',
        '{"action": "EXPLODE", "name": "x"}',
        '{"action": "DELETE"}',
        '{"action": "ADD", "parentName": "p"}',
        '{"action": "UPDATE", "originalName": "x"}',
        '{"action": "UPDATE", "originalName": "x", "attributes": [1]}',
        b"\xff\xfe",
    ])
    def test_malformed_payloads_raise(self, payload):
        with pytest.raises(ProtocolError):
            MutationRequest.from_payload(payload)

    def test_protocol_error_keeps_payload(self):
        with pytest.raises(ProtocolError) as info:
            MutationRequest.from_payload({"action": "NOPE"})
        assert info.value.payload == {"action": "NOPE"}


class TestActions:
    def test_update(self, mutations, document):
        result = mutations.apply(MutationRequest(MutationAction.UPDATE, target="btn_ok",
                                                 attributes={"x": "5", "value": "Click"}))
        assert result.success
        el = document.find("btn_ok")
        assert el.get("x") == "5"
        assert el.text == "Click"

    def test_update_reports_renamed_identity(self, mutations, document):
        result = mutations.apply(MutationRequest(MutationAction.UPDATE, target="btn_ok",
                                                 attributes={"name": "btn_go"}))
        assert result.details["identity"] == "btn_go"
        assert document.find("btn_go") is not None

    def test_update_missing_target_is_noop(self, mutations, document):
        before = document.serialize()
        result = mutations.apply(MutationRequest(MutationAction.UPDATE, target="nope", attributes={"x": "1"}))
        assert not result.success
        assert result.details["reason"] == "target_not_found"
        assert document.serialize() == before

    def test_delete(self, mutations, document):
        result = mutations.apply(MutationRequest(MutationAction.DELETE, target="btn_cancel"))
        assert result.success
        assert document.find("btn_cancel") is None

    def test_delete_root_is_refused(self, mutations, document):
        result = mutations.apply(MutationRequest(MutationAction.DELETE, target="form_main"))
        assert not result.success
        assert result.details["reason"] == "is_root"
        assert document.find("form_main") is not None

    def test_add(self, mutations, document):
        result = mutations.apply(MutationRequest(MutationAction.ADD, parent="panel_1", new_type="Item"))
        assert result.success
        identity = result.details["identity"]
        el = document.find(identity)
        assert el.getparent().get("name") == "panel_1"
        assert el.text == "New Item Value"

    def test_add_missing_parent(self, mutations):
        result = mutations.apply(MutationRequest(MutationAction.ADD, parent="nope", new_type="Item"))
        assert not result.success
        assert result.details["reason"] == "parent_not_found"

    def test_add_invalid_type(self, mutations):
        result = mutations.apply(MutationRequest(MutationAction.ADD, parent="form_main", new_type="1bad"))
        assert not result.success
        assert result.details["reason"] == "invalid_type"

    def test_duplicate(self, mutations, document):
        result = mutations.apply(MutationRequest(MutationAction.DUPLICATE, target="panel_1"))
        assert result.success
        copy = document.find(result.details["identity"])
        assert copy.getprevious().get("name") == "panel_1"
        assert len(copy) == 2
        document.addressing.assert_unique(document.root)

    def test_duplicate_root_is_refused(self, mutations, document):
        count = len(document.identities())
        result = mutations.apply(MutationRequest(MutationAction.DUPLICATE, target="form_main"))
        assert not result.success
        assert len(document.identities()) == count

    def test_paste_with_explicit_clipboard(self, mutations, document):
        result = mutations.apply(MutationRequest(
            MutationAction.PASTE, target="btn_ok", clipboard='<Button name="btn_ok" label="Copy"/>'
        ))
        assert result.success
        pasted = document.find(result.details["identity"])
        assert pasted.get("label") == "Copy"
        assert pasted.get("name") != "btn_ok"
        assert pasted.getprevious().get("name") == "btn_ok"

    def test_copy_then_paste(self, mutations, document):
        assert mutations.copy("panel_1").success
        assert mutations.clipboard.startswith("<Panel")
        result = mutations.paste("panel_1")
        assert result.success
        assert len(document.root.findall("Panel")) == 2
        document.addressing.assert_unique(document.root)

    def test_paste_with_empty_clipboard(self, mutations):
        result = mutations.paste("btn_ok")
        assert not result.success
        assert result.details["reason"] == "clipboard_empty"

    def test_paste_invalid_clipboard(self, mutations, document):
        before = document.serialize()
        result = mutations.apply(MutationRequest(MutationAction.PASTE, target="btn_ok", clipboard="<Button"))
        assert not result.success
        assert result.details["reason"] == "invalid_clipboard"
        assert document.serialize() == before

    def test_paste_fragment_with_entity_references_is_refused(self, mutations, document):
        before = document.serialize()
        clipboard = '<!DOCTYPE Button [<!ENTITY e "x">]><Button name="b9">&e;</Button>'
        result = mutations.apply(MutationRequest(MutationAction.PASTE, target="btn_ok", clipboard=clipboard))
        assert not result.success
        assert result.details["reason"] == "invalid_clipboard"
        assert document.serialize() == before
        assert document.find("btn_ok").getnext().get("name") == "btn_cancel"

    def test_paste_next_to_root(self, mutations):
        result = mutations.apply(MutationRequest(MutationAction.PASTE, target="form_main", clipboard="<A/>"))
        assert result.details["reason"] == "is_root"

    def test_copy_missing(self, mutations):
        assert not mutations.copy("nope").success
        assert mutations.clipboard is None

    def test_missing_fields_on_direct_request(self, mutations):
        result = mutations.apply(MutationRequest(MutationAction.DELETE))
        assert not result.success
        assert result.details["fields"] == ["target"]

    def test_no_document(self, empty_document):
        service = MutationService(empty_document)
        result = service.apply(MutationRequest(MutationAction.DELETE, target="x"))
        assert result.details["reason"] == "no_document"


class TestPayloadsAndRefresh:
    def test_handle_payload_drops_malformed(self, mutations, document):
        before = document.serialize()
        result = mutations.handle_payload('{"action": "FLY"}')
        assert isinstance(result, OperationResult)
        assert not result.success
        assert result.details["reason"] == "protocol_error"
        assert document.serialize() == before

    def test_batch_isolates_failures(self, mutations, document):
        results = mutations.apply_batch([
            json.dumps({"action": "DELETE", "name": "btn_cancel"}),
            "garbage",
            {"action": "DELETE", "name": "form_main"},
            {"action": "ADD", "parentName": "form_main", "newNodeType": "Button"},
        ])
        assert [r.success for r in results] == [True, False, False, True]
        assert document.find("btn_cancel") is None

    def test_success_refreshes_and_notifies(self, mutations, document):
        seen = []
        mutations.add_refresh_listener(seen.append)
        before = document.find("btn_ok")
        result = mutations.apply(MutationRequest(MutationAction.UPDATE, target="btn_ok", attributes={"x": "1"}))
        assert seen == [result]
        assert document.find("btn_ok") is not before

    def test_failure_does_not_notify(self, mutations):
        seen = []
        mutations.add_refresh_listener(seen.append)
        mutations.apply(MutationRequest(MutationAction.DELETE, target="nope"))
        assert seen == []

    def test_listener_errors_do_not_fail_the_action(self, mutations, document):
        seen = []

        def broken(result):
            raise RuntimeError("view crashed")

        mutations.add_refresh_listener(broken)
        mutations.add_refresh_listener(seen.append)
        result = mutations.apply(MutationRequest(MutationAction.DELETE, target="btn_cancel"))
        assert result.success
        assert len(seen) == 1

    def test_failed_refresh_rolls_back_the_action(self, mutations, document, monkeypatch):
        seen = []
        mutations.add_refresh_listener(seen.append)
        before = document.serialize()

        def failing_refresh():
            raise DocumentParseError("Entity 'e' not defined", "form.xml", 2)

        monkeypatch.setattr(document, "refresh", failing_refresh)
        result = mutations.apply(MutationRequest(MutationAction.DELETE, target="btn_cancel"))
        assert not result.success
        assert result.details["reason"] == "refresh_failed"
        assert document.find("btn_cancel") is not None
        assert document.serialize() == before
        assert seen == []

    def test_failed_refresh_rolls_back_binary_attach(self, mutations, document, monkeypatch):
        def failing_refresh():
            raise AddressingViolation({"pdf_1": 2})

        monkeypatch.setattr(document, "refresh", failing_refresh)
        result = mutations.attach_binary("pdf_1", b"%PDF-1.4")
        assert result.details["reason"] == "refresh_failed"
        assert document.find("pdf_1").text is None

    def test_remove_listener(self, mutations):
        seen = []
        mutations.add_refresh_listener(seen.append)
        mutations.remove_refresh_listener(seen.append)
        mutations.remove_refresh_listener(seen.append)
        mutations.apply(MutationRequest(MutationAction.DELETE, target="btn_cancel"))
        assert seen == []


class TestBinary:
    def test_attach_binary(self, mutations, document):
        result = mutations.attach_binary("pdf_1", b"%PDF-1.4")
        assert result.success
        assert document.get_binary_content("pdf_1") == b"%PDF-1.4"

    def test_attach_to_text_element(self, mutations):
        result = mutations.attach_binary("btn_ok", b"x")
        assert result.details["reason"] == "not_binary"

    def test_attach_to_missing_element(self, mutations):
        assert mutations.attach_binary("nope", b"x").details["reason"] == "target_not_found"
