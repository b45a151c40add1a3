"""Sync engine: push every discovered collection file to Postman.

Whether a file is created or updated depends only on whether the mapping
store remembers a uid for it. Updates are unconditional, there is no diff
against the remote collection.
"""

from pathlib import Path
from typing import Annotated, Callable, Literal

from pydantic import BaseModel, Field

from postman_sync.client import PostmanClient
from postman_sync.collection.discovery import discover_collections, relative_key
from postman_sync.collection.normalize import load_collection, normalize_collection
from postman_sync.config import SyncConfig
from postman_sync.errors import ParseError, UpstreamError
from postman_sync.mapping.store import MappingEntry, MappingStore


class Created(BaseModel):
    """A new remote collection was created for the file."""

    action: Literal["created"] = "created"
    file: str
    uid: str


class Updated(BaseModel):
    """The remembered remote collection was overwritten."""

    action: Literal["updated"] = "updated"
    file: str
    uid: str


class SyncFailure(BaseModel):
    """The file could not be synced; the run carried on."""

    action: Literal["failed"] = "failed"
    file: str
    error: str
    status: int | None = None


SyncOutcome = Created | Updated
SyncResult = Annotated[Created | Updated | SyncFailure, Field(discriminator="action")]


class SyncReport(BaseModel):
    results: list[SyncResult] = []
    pruned: list[str] = []
    persisted: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def created(self) -> list[Created]:
        return [r for r in self.results if isinstance(r, Created)]

    @property
    def updated(self) -> list[Updated]:
        return [r for r in self.results if isinstance(r, Updated)]

    @property
    def failures(self) -> list[SyncFailure]:
        return [r for r in self.results if isinstance(r, SyncFailure)]


class SyncEngine:
    """Runs one sync pass over the services directory."""

    def __init__(
        self,
        config: SyncConfig,
        client: PostmanClient | None = None,
        store: MappingStore | None = None,
    ):
        self.config = config
        self.client = client or PostmanClient(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
        )
        self.store = store or MappingStore(config.map_path)

    def sync_file(self, file_path: Path) -> SyncOutcome:
        """Create or update the remote collection for a single file.

        Raises ParseError or UpstreamError; the mapping store is only
        touched on success.
        """
        rel = relative_key(file_path, self.config.root_dir)
        raw = load_collection(file_path)
        try:
            collection = normalize_collection(raw)
        except ValueError as e:
            raise ParseError(file_path, str(e)) from e

        entry = self.store.get(rel)
        if not entry.uid:
            uid = self.client.create_collection(collection, workspace_id=self.config.workspace_id)
            outcome = Created(file=rel, uid=uid)
        else:
            uid = self.client.update_collection(entry.uid, collection)
            outcome = Updated(file=rel, uid=uid)

        self.store.put(rel, MappingEntry(file=rel, uid=uid))
        return outcome

    def run(self, on_result: Callable[[SyncResult], None] | None = None) -> SyncReport:
        """Sync every discovered file, prune stale entries and persist the mapping.

        Per-file errors are collected as SyncFailure results. Anything else
        (including an interrupt) propagates and nothing is written.
        """
        self.store.load()
        files = discover_collections(self.config.services_dir)

        report = SyncReport()
        for file_path in files:
            try:
                result = self.sync_file(file_path)
            except ParseError as e:
                result = SyncFailure(file=relative_key(file_path, self.config.root_dir), error=str(e))
            except UpstreamError as e:
                result = SyncFailure(
                    file=relative_key(file_path, self.config.root_dir),
                    error=str(e),
                    status=e.status,
                )
            report.results.append(result)
            if on_result:
                on_result(result)

        on_disk = {relative_key(f, self.config.root_dir) for f in files}
        report.pruned = self.store.prune_missing(on_disk)
        report.persisted = self.store.persist_if_needed()
        return report
