"""Peer identity: the value every membership set is built from."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class PeerId:
    """A cluster peer, addressed by the shared base name and its pod address.

    Two identifiers are equal iff both components match, so they can be
    used directly as set elements.
    """

    basename: str
    address: str

    @property
    def name(self) -> str:
        """Full node name, ``basename@address``."""
        return f"{self.basename}@{self.address}"

    def endpoint(self, port: int) -> str:
        """Transport endpoint for this peer on the given port."""
        return f"{self.address}:{port}"

    @classmethod
    def parse(cls, name: str) -> PeerId:
        """Parse a ``basename@address`` node name."""
        basename, sep, address = name.partition("@")
        if not sep or not basename or not address:
            raise ValueError(f"Invalid node name: {name!r}")
        return cls(basename=basename, address=address)

    def __str__(self) -> str:
        return self.name
