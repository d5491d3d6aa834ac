"""DbProviderFactory registration in a runtime's ``machine.config``.

The provider is registered by an element of the form::

    <configuration>
      <system.data>
        <DbProviderFactories>
          <add name="SQLite Data Provider" invariant="System.Data.SQLite"
               description=".NET Framework Data Provider for SQLite"
               type="System.Data.SQLite.SQLiteFactory, System.Data.SQLite, ..." />

Installing leaves exactly one ``add`` element for the invariant name (an
existing one is updated in place, attribute by attribute) and drops any
``remove`` element that would cancel it. Uninstalling drops both. The file is
only rewritten when its content changed, and never while simulating.
"""

import xml.etree.ElementTree as ET
from pathlib import Path

from registrar.catalog.targets import RuntimeTarget
from registrar.engine.context import OperationContext
from registrar.engine.probes import Presence

from .base import (
    DESCRIPTION,
    FACTORY_TYPE_NAME,
    INVARIANT_NAME,
    PROVIDER_NAME,
    OperationAborted,
    RegistrationOperation,
    StoreWriter,
    logger,
)

FACTORIES_PATH = ("system.data", "DbProviderFactories")


def load_document(file_name: Path) -> ET.ElementTree:
    """Parse a configuration file keeping its comments."""
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    try:
        return ET.parse(file_name, parser=parser)
    except ET.ParseError as e:
        raise OperationAborted(f"could not parse {file_name}: {e}") from e
    except OSError as e:
        raise OperationAborted(f"could not read {file_name}: {e}") from e


def factories_element(root: ET.Element, create: bool = False) -> ET.Element | None:
    """Return ``system.data/DbProviderFactories`` below ``root``."""
    element = root
    for tag in FACTORIES_PATH:
        child = element.find(tag)
        if child is None:
            if not create:
                return None
            child = ET.SubElement(element, tag)
        element = child
    return element


def append_child(parent: ET.Element, tag: str) -> ET.Element:
    """Append a ``tag`` element indented like its siblings.

    The new element takes over the closing indentation of ``parent``, and the
    previous last child gets the sibling indentation instead.
    """
    children = list(parent)
    element = ET.SubElement(parent, tag)
    if children:
        sibling_indent = children[-2].tail if len(children) > 1 else parent.text
        element.tail = children[-1].tail
        children[-1].tail = sibling_indent
    elif parent.text and not parent.text.strip():
        element.tail = parent.text
        parent.text = parent.text + "  "
    return element


def remove_child(parent: ET.Element, element: ET.Element) -> None:
    """Remove ``element``, handing its trailing whitespace to whatever precedes it."""
    children = list(parent)
    index = children.index(element)
    if index == len(children) - 1:
        if index > 0:
            children[index - 1].tail = element.tail
        else:
            parent.text = element.tail
    parent.remove(element)


def provider_elements(factories: ET.Element, tag: str, invariant: str) -> list[ET.Element]:
    return [child for child in factories.findall(tag) if child.get("invariant") == invariant]


def remove_provider(root: ET.Element, invariant: str) -> bool:
    """Drop every ``add`` and ``remove`` element for ``invariant``; True when any was found."""
    factories = factories_element(root)
    if factories is None:
        return False
    found = provider_elements(factories, "add", invariant) + provider_elements(
        factories, "remove", invariant
    )
    for element in found:
        remove_child(factories, element)
    return bool(found)


def add_provider(root: ET.Element, attributes: dict[str, str]) -> bool:
    """Make exactly one ``add`` element carry ``attributes``; True when anything changed."""
    invariant = attributes["invariant"]
    dirty = False

    factories = factories_element(root)
    if factories is None:
        factories = factories_element(root, create=True)
        dirty = True

    for element in provider_elements(factories, "remove", invariant):
        remove_child(factories, element)
        dirty = True

    existing = provider_elements(factories, "add", invariant)
    if existing:
        element = existing[0]
        for duplicate in existing[1:]:
            remove_child(factories, duplicate)
            dirty = True
    else:
        element = append_child(factories, "add")
        dirty = True

    for name, value in attributes.items():
        if element.get(name) != value:
            element.set(name, value)
            dirty = True
    return dirty


class ProviderFactoryOperation(RegistrationOperation):
    name = "provider_factory"
    description = "DbProviderFactory"

    invariant = INVARIANT_NAME

    def attributes(self, context: OperationContext) -> dict[str, str]:
        return {
            "name": PROVIDER_NAME,
            "invariant": self.invariant,
            "description": DESCRIPTION,
            "type": f"{FACTORY_TYPE_NAME}, {context.config.core_identity()}",
        }

    def install(
        self,
        target: RuntimeTarget,
        presence: Presence,
        context: OperationContext,
        writer: StoreWriter,
    ):
        document = load_document(presence.file)
        dirty = add_provider(document.getroot(), self.attributes(context))
        self._save(document, presence.file, dirty, context, writer)

    def uninstall(
        self,
        target: RuntimeTarget,
        presence: Presence,
        context: OperationContext,
        writer: StoreWriter,
    ):
        document = load_document(presence.file)
        dirty = remove_provider(document.getroot(), self.invariant)
        self._save(document, presence.file, dirty, context, writer)

    @staticmethod
    def _save(
        document: ET.ElementTree,
        file_name: Path,
        dirty: bool,
        context: OperationContext,
        writer: StoreWriter,
    ) -> None:
        if not dirty:
            logger.debug(f"{file_name} is already up to date")
            return

        if context.simulate:
            logger.info(f"Would save {file_name} (simulated)")
        else:
            try:
                document.write(file_name, encoding="utf-8", xml_declaration=True)
            except OSError as e:
                raise OperationAborted(f"could not save {file_name}: {e}") from e
            logger.info(f"Saved {file_name}")
        writer.files.files_modified += 1
        writer.side_effect = True
