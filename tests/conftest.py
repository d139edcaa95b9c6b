"""Shared fixtures for the editing core tests.

Schemas, documents and stylesheets live under ``tests/fixtures``; every
document fixture is a fresh model so tests may mutate it freely.
"""

import logging
import shutil
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from xmledit_toolkit.config import EditorSettings
from xmledit_toolkit.core.addressing import AddressingScheme
from xmledit_toolkit.core.document import DocumentModel
from xmledit_toolkit.core.schema import SchemaIntrospector
from xmledit_toolkit.core.services.mutation_service import MutationService
from xmledit_toolkit.core.session import EditorSession

# Configure test logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def fixtures_dir():
    return FIXTURES


@pytest.fixture(scope="session")
def schema_dir():
    """Directory holding ``form.xsd`` and the ``common.xsd`` it includes."""
    return FIXTURES / "schemas"


@pytest.fixture(scope="session")
def form_xml_path():
    return FIXTURES / "documents" / "form.xml"


@pytest.fixture(scope="session")
def stylesheet_dir():
    return FIXTURES / "stylesheets"


@pytest.fixture(scope="session")
def introspector(schema_dir):
    return SchemaIntrospector.from_directory(schema_dir)


@pytest.fixture
def degraded_introspector():
    return SchemaIntrospector(None)


@pytest.fixture
def addressing():
    return AddressingScheme()


@pytest.fixture
def empty_document(introspector, addressing):
    return DocumentModel(introspector, addressing)


@pytest.fixture
def document(empty_document, form_xml_path):
    """The form fixture loaded into a fresh model."""
    empty_document.load_file(form_xml_path)
    return empty_document


@pytest.fixture
def mutations(document):
    return MutationService(document)


@pytest.fixture
def session(introspector):
    return EditorSession(EditorSettings(), introspector)


@pytest.fixture
def form_copy(tmp_path, form_xml_path):
    """A writable copy of the form fixture."""
    target = tmp_path / "form.xml"
    shutil.copy(form_xml_path, target)
    return target
