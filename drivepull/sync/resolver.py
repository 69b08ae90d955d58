"""
Change resolution for pulls.

Walks the remote tree and the local tree side by side and produces the
ordered list of Changes that makes the local tree match the remote one.
"""

import logging
from typing import Optional

from ..remote.client import DriveClient, TransportError
from .changes import Change, FileMeta, ResolutionError, check_unique_paths
from .context import SyncContext, join_path

logger = logging.getLogger(__name__)


def compute_change(
    path: str,
    remote: Optional[FileMeta],
    local: Optional[FileMeta],
) -> Optional[Change]:
    """
    Compute the change for one path.

    Rules:
    - Remote only -> Add
    - Local only -> Delete
    - Both, diverged -> Modify
    - Both, identical (or neither) -> None

    Args:
        path: Logical path of the entry
        remote: Remote snapshot, the target state
        local: Local snapshot, the current state

    Returns:
        Change, or None when nothing needs to happen
    """
    if remote is None and local is None:
        return None
    if remote is not None and local is not None and not remote.differs_from(local):
        return None
    return Change(path=path, src=remote, dest=local)


class ChangeResolver:
    """
    Computes pull change lists.

    Changes are emitted parent first, so a directory's Add always precedes
    the Adds of its children. Deleting a local directory produces a single
    Delete for the whole subtree.

    Usage:
        resolver = ChangeResolver(client, context)
        changes = resolver.resolve("/docs", local_meta, remote_meta)
    """

    def __init__(self, remote: DriveClient, context: SyncContext):
        self.remote = remote
        self.context = context

    def resolve(
        self,
        path: str,
        local: Optional[FileMeta],
        remote: Optional[FileMeta],
    ) -> list[Change]:
        """
        Resolve the change list rooted at path.

        Raises:
            ResolutionError: If either tree cannot be listed
        """
        changes: list[Change] = []
        self._resolve(path, local, remote, changes)
        check_unique_paths(changes)
        logger.info(f"Resolved {len(changes)} changes under {path}")
        return changes

    def _resolve(
        self,
        path: str,
        local: Optional[FileMeta],
        remote: Optional[FileMeta],
        changes: list[Change],
    ) -> None:
        change = compute_change(path, remote, local)
        if change is not None:
            logger.debug(f"Change detected: {change}")
            changes.append(change)

        if remote is None or not remote.is_dir:
            return

        local_children = {}
        if local is not None and local.is_dir:
            local_children = self._list_local(path)

        # Logical and on-disk names share one namespace per folder
        seen = set()
        for child in sorted(self._list_remote(remote), key=lambda meta: meta.name):
            child_path = join_path(path, child.name)
            if child.name in seen or child.local_name in seen:
                logger.warning(f"Skipping duplicate remote entry {child_path}")
                continue
            seen.update((child.name, child.local_name))

            local_child = local_children.pop(child.local_name, None)
            if child.local_name != child.name and child.name in local_children:
                changes.append(self._replace_stale(
                    child_path, child, local_child, local_children.pop(child.name),
                ))
                continue
            self._resolve(child_path, local_child, child, changes)

        for name, child in sorted(local_children.items()):
            self._resolve(join_path(path, name), child, None, changes)

    def _replace_stale(
        self,
        path: str,
        remote: FileMeta,
        exported: Optional[FileMeta],
        stale: FileMeta,
    ) -> Change:
        """
        Build the single change for an exported document whose bare name
        is also taken locally, typically by a file that was converted to a
        document remotely after an earlier pull.

        The stale entry is the change's dest so it gets removed; the export
        is (re)written unless the existing one is already current.
        """
        logger.info(f"Local entry {stale.blob_at} is superseded by the export of {path}")
        if exported is not None and not remote.differs_from(exported):
            return Change(path=path, dest=stale)
        return Change(path=path, src=remote, dest=stale)

    def _list_remote(self, folder: FileMeta) -> list[FileMeta]:
        try:
            return self.remote.list_children(folder.id)
        except TransportError as e:
            raise ResolutionError(f"Cannot list remote folder {folder.name!r}: {e}") from e

    def _list_local(self, path: str) -> dict[str, FileMeta]:
        try:
            return self.context.list_local(self.context.abs_path_of(path))
        except (OSError, ValueError) as e:
            raise ResolutionError(f"Cannot list local directory {path!r}: {e}") from e
