"""In-process caches."""

from .blocklist import BlocklistConfig, DomainBlocklist, parse_blocklist_csv

__all__ = ["BlocklistConfig", "DomainBlocklist", "parse_blocklist_csv"]
