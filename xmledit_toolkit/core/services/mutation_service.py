from __future__ import annotations

"""Service layer interpreting edit requests against the document model.

Requests arrive as flat JSON records from the visualization (or are built
directly by callers) and are decoded into :class:`MutationRequest` values.
A single :class:`MutationService` dispatches them to per-action handlers.

Scope and guarantees:
- Operates purely in-memory on a :class:`DocumentModel`; no file I/O nor UI
  imports.
- Expected failures return ``OperationResult(success=False, ...)`` with a
  ``reason`` in ``details`` and leave the document unchanged; they never raise.
- After every successful action the document is refreshed and the refresh
  listeners are notified.  If the refresh fails the pre-action tree is
  restored and the action is reported as failed.

Examples
--------
Basic usage:

    service = MutationService(document)
    result = service.handle_payload('{"action": "ADD", "parentName": "form_1", "newNodeType": "Button"}')
    if result.success:
        new_identity = result.details["identity"]

"""

from dataclasses import dataclass
from enum import Enum
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from xmledit_toolkit.core.document import DocumentModel
from xmledit_toolkit.core.exceptions import AddressingViolation, DocumentParseError, ProtocolError


__all__ = [
    "OperationResult",
    "MutationAction",
    "MutationRequest",
    "MutationService",
]

logger = logging.getLogger(__name__)

Payload = Union[Mapping[str, Any], str, bytes]
RefreshListener = Callable[["OperationResult"], None]


@dataclass(frozen=True)
class OperationResult:
    """Result of an editing operation.

    Attributes
    ----------
    success
        Whether the operation completed successfully.
    message
        Human-readable summary suitable for logs or UI display.
    details
        Optional structured details for diagnostics or caller logic
        (``identity`` of created nodes, ``reason`` of failures).
    """
    success: bool
    message: str
    details: Optional[Dict[str, Any]] = None


class MutationAction(str, Enum):
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ADD = "ADD"
    DUPLICATE = "DUPLICATE"
    PASTE = "PASTE"

    @classmethod
    def parse(cls, value: Any) -> "MutationAction":
        """Case-insensitive lookup; raises :class:`ProtocolError` for unknown actions."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ProtocolError(f"Unknown action: {value!r}") from None


# Payload field names, preferred spelling first
_TARGET_KEYS = ("target", "originalName", "name")
_PARENT_KEYS = ("parent", "parentName")
_TYPE_KEYS = ("type", "newNodeType")

_REQUIRED: Dict[MutationAction, Tuple[str, ...]] = {
    MutationAction.UPDATE: ("target", "attributes"),
    MutationAction.DELETE: ("target",),
    MutationAction.ADD: ("parent", "new_type"),
    MutationAction.DUPLICATE: ("target",),
    MutationAction.PASTE: ("target",),
}


def _first(payload: Mapping[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if value is not None and str(value) != "":
            return str(value)
    return None


def _coerce_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


@dataclass(frozen=True)
class MutationRequest:
    """One decoded edit request.

    ``attributes`` is None when the record carried no attribute map, which
    is distinct from an empty map.
    """

    action: MutationAction
    target: Optional[str] = None
    parent: Optional[str] = None
    new_type: Optional[str] = None
    attributes: Optional[Dict[str, str]] = None
    clipboard: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Payload) -> "MutationRequest":
        """Decode a JSON record (text, bytes or already-parsed mapping).

        Raises
        ------
        ProtocolError
            If the record is not a JSON object, names an unknown action or
            lacks a field the action requires.
        """
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = bytes(payload).decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ProtocolError(f"Payload is not UTF-8: {exc}", payload) from exc
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as exc:
                raise ProtocolError(f"Payload is not valid JSON: {exc}", payload) from exc
        if not isinstance(payload, Mapping):
            raise ProtocolError("Payload must be a JSON object", payload)
        if "action" not in payload:
            raise ProtocolError("Payload has no 'action'", payload)

        try:
            action = MutationAction.parse(payload["action"])
        except ProtocolError as exc:
            raise ProtocolError(str(exc), payload) from None

        raw_attributes = payload.get("attributes")
        if raw_attributes is not None and not isinstance(raw_attributes, Mapping):
            raise ProtocolError("'attributes' must be a JSON object", payload)
        attributes = None
        if raw_attributes is not None:
            attributes = {str(k): _coerce_value(v) for k, v in raw_attributes.items()}

        clipboard = payload.get("clipboard")
        request = cls(
            action=action,
            target=_first(payload, _TARGET_KEYS),
            parent=_first(payload, _PARENT_KEYS),
            new_type=_first(payload, _TYPE_KEYS),
            attributes=attributes,
            clipboard=str(clipboard) if clipboard else None,
        )
        missing = request.missing_fields()
        if missing:
            raise ProtocolError(f"{action.value} requires {', '.join(missing)}", payload)
        return request

    def missing_fields(self) -> List[str]:
        return [name for name in _REQUIRED[self.action] if getattr(self, name) is None]


class MutationService:
    """Applies :class:`MutationRequest` values to a :class:`DocumentModel`.

    Design principles:
    - One interpreter with a handler per action; no action-specific entry
      points beyond the clipboard conveniences.
    - No exceptions for expected invalid requests; return OperationResult.
    - Listener failures are logged and never fail the action.
    """

    def __init__(self, document: DocumentModel) -> None:
        self._document = document
        self._clipboard: Optional[str] = None
        self._listeners: List[RefreshListener] = []
        self._handlers: Dict[MutationAction, Callable[[MutationRequest], OperationResult]] = {
            MutationAction.UPDATE: self._apply_update,
            MutationAction.DELETE: self._apply_delete,
            MutationAction.ADD: self._apply_add,
            MutationAction.DUPLICATE: self._apply_duplicate,
            MutationAction.PASTE: self._apply_paste,
        }

    @property
    def document(self) -> DocumentModel:
        return self._document

    @property
    def clipboard(self) -> Optional[str]:
        return self._clipboard

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_refresh_listener(self, listener: RefreshListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_refresh_listener(self, listener: RefreshListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def handle_payload(self, payload: Payload) -> OperationResult:
        """Decode and apply one inbound record; malformed records are dropped."""
        try:
            request = MutationRequest.from_payload(payload)
        except ProtocolError as exc:
            logger.warning("Edit FAIL: protocol_error %s", exc)
            return OperationResult(False, str(exc), {"reason": "protocol_error"})
        return self.apply(request)

    def apply_batch(self, payloads: Iterable[Payload]) -> List[OperationResult]:
        """Apply records in order; a failing record does not stop the rest."""
        return [self.handle_payload(payload) for payload in payloads]

    def apply(self, request: MutationRequest) -> OperationResult:
        """Apply *request*; see the module docstring for guarantees."""
        logger.info(
            "Edit: %s target=%s parent=%s type=%s",
            request.action.value, request.target, request.parent, request.new_type,
        )
        if not self._document.is_loaded:
            logger.warning("Edit FAIL: %s no_document", request.action.value)
            return OperationResult(False, "No document loaded.", {"reason": "no_document"})

        missing = request.missing_fields()
        if missing:
            logger.warning("Edit FAIL: %s missing_fields=%s", request.action.value, missing)
            return OperationResult(
                False,
                f"{request.action.value} requires {', '.join(missing)}.",
                {"reason": "missing_fields", "fields": missing},
            )

        snapshot = self._document.snapshot()
        result = self._handlers[request.action](request)
        if result.success:
            result = self._after_change(result, snapshot)
        if result.success:
            logger.info("Edit OK: %s %s", request.action.value, result.message)
        else:
            logger.info("Edit noop: %s %s", request.action.value, result.message)
        return result

    def copy(self, identity: str) -> OperationResult:
        """Store the subtree rooted at *identity* as the clipboard."""
        text = self._document.export_subtree(identity)
        if text is None:
            logger.info("Edit noop: copy target_not_found target=%s", identity)
            return OperationResult(False, f"Element '{identity}' not found.", {"reason": "target_not_found"})
        self._clipboard = text
        logger.debug("Edit: copy target=%s len=%d", identity, len(text))
        return OperationResult(True, f"Copied '{identity}'.", {"identity": identity})

    def paste(self, target: str) -> OperationResult:
        """Insert the stored clipboard as next sibling of *target*."""
        return self.apply(MutationRequest(MutationAction.PASTE, target=target))

    def attach_binary(self, identity: str, raw: bytes) -> OperationResult:
        """Encode *raw* into the text content of a binary element."""
        logger.info("Edit: attach_binary target=%s bytes=%d", identity, len(raw))
        if self._document.find(identity) is None:
            logger.info("Edit noop: attach_binary target_not_found target=%s", identity)
            return OperationResult(False, f"Element '{identity}' not found.", {"reason": "target_not_found"})
        snapshot = self._document.snapshot()
        if not self._document.set_binary_content(identity, raw):
            return OperationResult(False, f"Element '{identity}' does not hold binary content.",
                                   {"reason": "not_binary"})
        result = OperationResult(True, f"Attached {len(raw)} bytes to '{identity}'.", {"identity": identity})
        result = self._after_change(result, snapshot)
        if result.success:
            logger.info("Edit OK: attach_binary target=%s", identity)
        return result

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _apply_update(self, request: MutationRequest) -> OperationResult:
        target = request.target
        el = self._document.find(target)
        if el is None:
            return self._not_found(target)
        if not request.attributes:
            return OperationResult(False, "No attributes to update.", {"reason": "no_attributes"})
        self._document.update_attributes(target, request.attributes)
        # The update may have renamed the element
        identity = self._document.addressing.identity_of(el) or target
        return OperationResult(True, f"Updated '{target}'.", {"identity": identity,
                                                              "keys": sorted(request.attributes)})

    def _apply_delete(self, request: MutationRequest) -> OperationResult:
        target = request.target
        el = self._document.find(target)
        if el is None:
            return self._not_found(target)
        if el.getparent() is None:
            return OperationResult(False, "The root element cannot be deleted.", {"reason": "is_root"})
        self._document.remove_by_identity(target)
        return OperationResult(True, f"Deleted '{target}'.", {"identity": target})

    def _apply_add(self, request: MutationRequest) -> OperationResult:
        parent = request.parent
        if self._document.find(parent) is None:
            return OperationResult(False, f"Parent '{parent}' not found.", {"reason": "parent_not_found"})
        identity = self._document.add_child(parent, request.new_type)
        if identity is None:
            return OperationResult(False, f"Invalid element type '{request.new_type}'.", {"reason": "invalid_type"})
        return OperationResult(True, f"Added <{request.new_type}> '{identity}' under '{parent}'.",
                               {"identity": identity, "parent": parent})

    def _apply_duplicate(self, request: MutationRequest) -> OperationResult:
        target = request.target
        el = self._document.find(target)
        if el is None:
            return self._not_found(target)
        if el.getparent() is None:
            return OperationResult(False, "The root element cannot be duplicated.", {"reason": "is_root"})
        clone = self._document.clone_subtree(target)
        identity = self._document.addressing.identity_of(clone)
        self._document.insert_after(target, clone)
        return OperationResult(True, f"Duplicated '{target}' as '{identity}'.",
                               {"identity": identity, "source": target})

    def _apply_paste(self, request: MutationRequest) -> OperationResult:
        target = request.target
        text = request.clipboard or self._clipboard
        if not text:
            return OperationResult(False, "Clipboard is empty.", {"reason": "clipboard_empty"})
        el = self._document.find(target)
        if el is None:
            return self._not_found(target)
        if el.getparent() is None:
            return OperationResult(False, "Cannot paste next to the root element.", {"reason": "is_root"})
        try:
            fragment = self._document.import_subtree(text)
        except DocumentParseError as exc:
            return OperationResult(False, f"Clipboard is not valid XML: {exc}", {"reason": "invalid_clipboard"})
        identity = self._document.addressing.identity_of(fragment)
        self._document.insert_after(target, fragment)
        return OperationResult(True, f"Pasted '{identity}' after '{target}'.", {"identity": identity})

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _not_found(identity: Optional[str]) -> OperationResult:
        return OperationResult(False, f"Element '{identity}' not found.", {"reason": "target_not_found"})

    def _after_change(self, result: OperationResult, snapshot) -> OperationResult:
        try:
            self._document.refresh()
        except (DocumentParseError, AddressingViolation) as exc:
            logger.error("Edit FAIL: refresh_failed err=%s", exc)
            self._document.restore(snapshot)
            return OperationResult(False, f"Edit rolled back: {exc}",
                                   {"reason": "refresh_failed", "error_type": exc.__class__.__name__})
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:  # noqa: BLE001 - listeners must not break the edit
                logger.exception("Edit: refresh listener %r failed", listener)
        return result
