"""Flatten a component tree into a CycloneDX document.

The tree is walked depth-first in source order. Each component gets a
bom-ref: its package URL when it has one, otherwise a fresh id from the
injected generator. Components sharing a package URL collapse into one entry
of the flat list, while every parent keeps its own edge to that entry.

The document itself is built from cyclonedx-python-lib objects and rendered
by its JSON 1.4 outputter, which also fixes the order of components and
dependencies. Given a fixed id generator and clock, the same tree always
encodes to the same document.
"""
import uuid
from collections.abc import Callable
from datetime import datetime
from datetime import timezone

import structlog
from cyclonedx.exception.model import UnknownHashTypeException
from cyclonedx.model import HashType
from cyclonedx.model import Property
from cyclonedx.model.bom import Bom
from cyclonedx.model.bom import BomMetaData
from cyclonedx.model.bom_ref import BomRef
from cyclonedx.model.component import Component as CdxComponent
from cyclonedx.model.component import ComponentType as CdxComponentType
from cyclonedx.model.dependency import Dependency
from cyclonedx.model.tool import Tool
from cyclonedx.model.tool import ToolRepository
from cyclonedx.output.json import JsonV1Dot4

from kubesbom.__version__ import __version__
from kubesbom.core.exceptions import EncodeError
from kubesbom.models.component import Component

logger = structlog.get_logger('encoder_service')

NAMESPACE = 'aquasecurity:trivy:'
TOOL_VENDOR = 'aquasecurity'
TOOL_NAME = 'trivy'


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_json(bom: Bom) -> str:
    """Render a document as CycloneDX 1.4 JSON."""
    return JsonV1Dot4(bom).output_as_string(indent=2)


class _Graph:
    """Arena of emitted components plus the edges between them."""

    def __init__(self, root: CdxComponent):
        self.components: list[CdxComponent] = []
        self.index: dict[str, CdxComponent] = {root.bom_ref.value: root}
        self.edges: dict[str, list[str]] = {root.bom_ref.value: []}

    def add(self, component: CdxComponent) -> bool:
        """Store a component unless its bom-ref is already known."""
        ref = component.bom_ref.value
        if ref in self.index:
            return False
        self.index[ref] = component
        self.components.append(component)
        self.edges[ref] = []
        return True

    def link(self, parent: str, child: str) -> None:
        deps = self.edges[parent]
        if child not in deps:
            deps.append(child)

    def dependencies(self) -> list[Dependency]:
        # Edges point at the components' own BomRef objects
        return [
            Dependency(
                ref=self.index[ref].bom_ref,
                dependencies=[Dependency(ref=self.index[dep].bom_ref) for dep in deps],
            )
            for ref, deps in self.edges.items()
        ]


class CycloneDXEncoder:
    def __init__(
        self,
        app_version: str = __version__,
        clock: Callable[[], datetime] = utc_now,
        new_uuid: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self.app_version = app_version
        self.clock = clock
        self.new_uuid = new_uuid

    def encode(self, root: Component) -> Bom:
        serial_number = self.new_uuid()
        root_component = self._render(root, str(self.new_uuid()))
        graph = _Graph(root_component)

        self._walk(root, root_component.bom_ref.value, graph)

        bom = Bom(
            serial_number=serial_number,
            metadata=BomMetaData(
                timestamp=self._timestamp(),
                tools=ToolRepository(
                    tools=[
                        Tool(vendor=TOOL_VENDOR, name=TOOL_NAME, version=self.app_version),
                    ],
                ),
                component=root_component,
            ),
            components=graph.components,
            dependencies=graph.dependencies(),
        )
        logger.debug(
            'Encoded component tree',
            root=root.name,
            components=len(graph.components),
            dependencies=len(graph.edges),
        )
        return bom

    def encode_json(self, root: Component) -> str:
        return to_json(self.encode(root))

    def _walk(self, root: Component, root_ref: str, graph: _Graph) -> None:
        # Keyed by object id: equal components at different positions are distinct nodes
        refs = {id(root): root_ref}
        for parent, child in root.walk():
            child_ref = self._bom_ref(child)
            refs[id(child)] = child_ref
            if not graph.add(self._render(child, child_ref)):
                logger.debug('Merged duplicate component', bom_ref=child_ref)
            graph.link(refs[id(parent)], child_ref)

    def _bom_ref(self, component: Component) -> str:
        purl = component.purl
        if purl:
            return purl
        return str(self.new_uuid())

    def _timestamp(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc).replace(microsecond=0)

    def _render(self, component: Component, bom_ref: str) -> CdxComponent:
        return CdxComponent(
            bom_ref=BomRef(bom_ref),
            type=CdxComponentType(component.type.value),
            name=component.name,
            version=component.version or None,
            hashes=self._hashes(component),
            purl=component.package_url,
            properties=[
                Property(name=f"{NAMESPACE}{key}", value=value or None)
                for key, value in sorted(component.properties.items())
            ],
        )

    @staticmethod
    def _hashes(component: Component) -> list[HashType]:
        try:
            return [HashType.from_composite_str(value) for value in component.hashes]
        except UnknownHashTypeException as e:
            raise EncodeError(f"unsupported digest on {component.name}: {e}") from e
