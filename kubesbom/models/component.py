from collections.abc import Iterator
from dataclasses import dataclass
from dataclasses import field
from enum import Enum

from packageurl import PackageURL


class ComponentType(str, Enum):
    CONTAINER = 'container'
    APPLICATION = 'application'
    OPERATING_SYSTEM = 'operating-system'
    LIBRARY = 'library'

    def __str__(self) -> str:
        return self.value


@dataclass
class Component:
    """
    A node of the cluster inventory tree.

    Components form a strict tree: children are owned by exactly one parent.
    A component carrying a package URL may still describe the same package as
    another component elsewhere in the tree; the encoder collapses those.
    """
    type: ComponentType
    name: str
    version: str = ''
    package_url: PackageURL | None = None
    hashes: list[str] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    components: list['Component'] = field(default_factory=list)

    @property
    def purl(self) -> str | None:
        """Canonical identity string, or None for position-only components."""
        if self.package_url is None:
            return None
        return self.package_url.to_string()

    def walk(self) -> Iterator[tuple['Component', 'Component']]:
        """Yield (parent, child) pairs depth-first in source order."""
        for child in self.components:
            yield self, child
            yield from child.walk()
