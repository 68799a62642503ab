"""Consistency sweep between the photos table and the photo directory.

A failed delete can leave a record whose file is already gone (the recoverable
direction). A crash between writing a file and recording it can leave a file
that nothing references. This module finds both and can prune the first kind.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

from loguru import logger

from photostore.models.records import PhotoRecord


@dataclass
class ReconcileReport:
    dangling: list[PhotoRecord] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)
    pruned: int = 0

    @property
    def clean(self) -> bool:
        return not self.dangling and not self.orphans


class Reconciler:
    def __init__(self, repository, blob_store):
        self.repository = repository
        self.blob_store = blob_store

    async def find_dangling(self) -> list[PhotoRecord]:
        """Records whose file is missing, malformed records included."""
        dangling = []
        for record in await self.repository.list_all():
            if not await self.blob_store.exists(record.uri):
                dangling.append(record)
        return dangling

    async def find_orphans(self) -> list[str]:
        """Files in the photo directory that no record points at."""
        referenced = {
            os.path.abspath(r.uri) for r in await self.repository.list_all() if r.uri
        }
        return [
            path for path in await self.blob_store.list_files()
            if os.path.abspath(path) not in referenced
        ]

    async def prune_dangling(self) -> int:
        pruned = 0
        for record in await self.find_dangling():
            if await self.repository.delete_by_id(record.id):
                pruned += 1
        if pruned:
            logger.info("Pruned {} dangling photo record(s)", pruned)
        return pruned

    async def sweep(self, prune: bool = False) -> ReconcileReport:
        report = ReconcileReport(
            dangling=await self.find_dangling(),
            orphans=await self.find_orphans(),
        )
        if prune and report.dangling:
            report.pruned = await self.prune_dangling()
        return report
