from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Iterator
from dataclasses import dataclass

from tlsgate import exceptions
from tlsgate.net import server_spec


@dataclass(frozen=True)
class AllowList:
    """
    The set of destination authorities clients may open tunnels to.

    Matching is exact and case-sensitive: `"example.com:443"` does not permit
    `"EXAMPLE.com:443"`, `"example.com"` or `"https://example.com:443"`.
    Instances are immutable and shared by all connection handlers.
    """

    entries: frozenset[str] = frozenset()

    @classmethod
    def from_specs(cls, specs: Iterable[str]) -> AllowList:
        """
        Build an allow-list from `host:port` strings.

        *Raises:*
         - ConfigError, if an entry is not a plain `host:port` authority.
        """
        entries = []
        for spec in specs:
            try:
                server_spec.parse_authority(spec)
            except ValueError as e:
                raise exceptions.ConfigError(
                    f"Invalid allow-list entry {spec!r}: {e}. "
                    f'Entries must be authorities of the form "host:port".'
                ) from e
            entries.append(spec)
        return cls(frozenset(entries))

    def is_permitted(self, target: str) -> bool:
        return target in self.entries

    def __contains__(self, target: object) -> bool:
        return target in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.entries))

    def __len__(self) -> int:
        return len(self.entries)
