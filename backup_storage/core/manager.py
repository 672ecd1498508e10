"""
Backup Manager

Orchestrates complete backups of a data directory on top of any BackupStorage:
copying files into a session concurrently, describing them in a MANIFEST,
restoring them with checksum verification, and pruning old backups.
"""

import asyncio
import functools
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Tuple, TypeVar, Union

from ..config import BackupStorageConfig
from ..exceptions import BackupCorruptedError, BackupNotFoundError, BackupStorageError
from ..models.entities import BackupManifest, ManifestFile
from ..utils.checksum import ChecksumCalculator, checksums_match
from ..utils.retention import RetentionPolicy
from .interface import BackupHandle, BackupStorage

logger = logging.getLogger(__name__)

T = TypeVar('T')

MANIFEST_FILE = "MANIFEST"


class BackupManager:
    """
    Manages backup and restore of a directory tree through a BackupStorage.

    Each source file is stored under its index in the manifest ("0", "1", ...),
    which keeps backup file names inside the storage's allowed character set
    whatever the source paths look like.

    Example:
        ```python
        manager = BackupManager(
            storage=get_backup_storage(),
            config=BackupStorageConfig(max_concurrent_files=8)
        )

        # Create backup
        manifest = await manager.create_backup(
            "commerce/0", "zone1-0000000100-20240115.120000", "/var/lib/mysql"
        )

        # List backups
        names = await manager.list_backups("commerce/0")

        # Restore the newest backup
        await manager.restore_backup("commerce/0", "/var/lib/mysql-restore")
        ```
    """

    def __init__(
        self,
        storage: BackupStorage,
        config: Optional[BackupStorageConfig] = None
    ):
        """
        Initialize BackupManager.

        Args:
            storage: Storage holding the backups
            config: Backup configuration (uses defaults if None)
        """
        self._storage = storage
        self._config = config or BackupStorageConfig()
        self._checksum = ChecksumCalculator(self._config.checksum_algorithm)

        logger.info("BackupManager initialized")

    @property
    def storage(self) -> BackupStorage:
        return self._storage

    async def _run(self, func: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def create_backup(
        self,
        directory: str,
        name: str,
        source_dir: Union[str, Path]
    ) -> BackupManifest:
        """
        Back up every regular file below source_dir.

        Files are copied concurrently, at most max_concurrent_files at a time.
        A file that fails is recorded in the session's error recorder; once
        all copies have settled, any failure aborts the session.

        Args:
            directory: Backup directory, usually keyspace/shard
            name: Backup name, usually alias-timestamp
            source_dir: Directory to back up

        Returns:
            BackupManifest describing the committed backup

        Raises:
            BackupStorageError: If source_dir is not a directory
            BackupAlreadyExistsError: If the backup key is taken
            BackupSessionError: If one or more files failed
        """
        source = Path(source_dir)
        if not source.is_dir():
            raise BackupStorageError(
                f"source is not a directory: {source}", directory=directory, name=name
            )

        paths = await self._run(self._collect_files, source)
        created_at = datetime.now()
        handle = await self._storage.start_backup(directory, name)
        logger.info(f"Creating backup {directory}/{name} of {len(paths)} files from {source}")

        try:
            semaphore = asyncio.Semaphore(self._config.max_concurrent_files)
            results = await asyncio.gather(
                *(
                    self._backup_file(handle, semaphore, index, source, path)
                    for index, path in enumerate(paths)
                ),
                return_exceptions=True
            )

            failures = [r for r in results if isinstance(r, BaseException)]
            if failures:
                raise handle.error_recorder.error() or failures[0]

            manifest = BackupManifest(
                directory=directory,
                name=name,
                created_at=created_at,
                finished_at=datetime.now(),
                checksum_algorithm=self._config.checksum_algorithm,
                files=list(results)
            )
            async with await handle.add_file(MANIFEST_FILE) as writer:
                await writer.write(manifest.model_dump_json(indent=2).encode("utf-8"))

            await handle.end_backup()

        except BaseException as e:
            logger.error(f"Backup {directory}/{name} failed, aborting: {e!r}")
            await self._abort(handle)
            raise

        logger.info(
            f"Backup {directory}/{name} complete: "
            f"{manifest.file_count} files, {manifest.total_size} bytes"
        )
        return manifest

    async def _abort(self, handle: BackupHandle) -> None:
        if handle.finished:
            return
        try:
            await handle.abort_backup()
        except Exception as abort_error:
            # The original failure is what the caller sees.
            logger.error(f"Abort of {handle.directory}/{handle.name} also failed: {abort_error}")

    @staticmethod
    def _collect_files(source: Path) -> List[Path]:
        files = []
        for root, dirs, names in os.walk(source):
            dirs.sort()
            for filename in sorted(names):
                path = Path(root) / filename
                if path.is_file() and not path.is_symlink():
                    files.append(path)
        return files

    async def _backup_file(
        self,
        handle: BackupHandle,
        semaphore: asyncio.Semaphore,
        index: int,
        source: Path,
        path: Path
    ) -> ManifestFile:
        filename = str(index)
        relative_path = path.relative_to(source).as_posix()

        async with semaphore:
            try:
                file: BinaryIO = await self._run(open, path, "rb")
                filesize = os.fstat(file.fileno()).st_size
            except OSError as e:
                handle.error_recorder.record_error(filename, e)
                raise

            try:
                hash_func = self._checksum.new_hash()
                size = 0
                # Errors inside the block are recorded by the writer.
                async with await handle.add_file(filename, filesize) as writer:
                    while True:
                        chunk = await self._run(file.read, self._config.read_chunk_size_bytes)
                        if not chunk:
                            break
                        hash_func.update(chunk)
                        await writer.write(chunk)
                        size += len(chunk)
            finally:
                file.close()

        logger.debug(f"Backed up {relative_path} as file {filename} ({size} bytes)")
        return ManifestFile(path=relative_path, size=size, checksum=hash_func.hexdigest())

    async def get_manifest(self, directory: str, name: Optional[str] = None) -> BackupManifest:
        """
        Read the manifest of a backup.

        Args:
            directory: Backup directory
            name: Backup name (the newest backup if None)

        Raises:
            BackupNotFoundError: If the backup or its manifest does not exist
        """
        handle = await self._find_backup(directory, name)
        return await self._read_manifest(handle)

    async def _find_backup(self, directory: str, name: Optional[str]) -> BackupHandle:
        handles = await self._storage.list_backups(directory)
        if not handles:
            raise BackupNotFoundError("no backups found", directory=directory, name=name)
        if name is None:
            return handles[-1]
        for handle in handles:
            if handle.name == name:
                return handle
        raise BackupNotFoundError("backup not found", directory=directory, name=name)

    async def _read_manifest(self, handle: BackupHandle) -> BackupManifest:
        async with await handle.read_file(MANIFEST_FILE) as reader:
            data = await reader.read()
        return BackupManifest.model_validate_json(data)

    async def restore_backup(
        self,
        directory: str,
        target_dir: Union[str, Path],
        name: Optional[str] = None
    ) -> BackupManifest:
        """
        Restore a backup into target_dir and verify every file.

        Args:
            directory: Backup directory
            target_dir: Directory to restore into (created if missing)
            name: Backup to restore (the newest backup if None)

        Returns:
            BackupManifest of the restored backup

        Raises:
            BackupNotFoundError: If there is no matching backup
            BackupCorruptedError: If a restored file does not match its checksum
        """
        handle = await self._find_backup(directory, name)
        manifest = await self._read_manifest(handle)
        target = Path(target_dir)
        await self._run(functools.partial(target.mkdir, parents=True, exist_ok=True))

        logger.info(
            f"Restoring backup {directory}/{handle.name} "
            f"({manifest.file_count} files) into {target}"
        )

        for index, entry in enumerate(manifest.files):
            dest = self._restore_path(target, entry, handle)
            actual, size = await self._restore_file(handle, str(index), dest)
            if not checksums_match(entry.checksum, actual) or size != entry.size:
                raise BackupCorruptedError(
                    f"restored file {entry.path} does not match the manifest",
                    directory=directory,
                    name=handle.name,
                    filename=entry.path,
                    expected_checksum=entry.checksum,
                    actual_checksum=actual
                )
            logger.debug(f"Restored {entry.path} ({size} bytes)")

        logger.info(f"Restore of {directory}/{handle.name} complete")
        return manifest

    @staticmethod
    def _restore_path(target: Path, entry: ManifestFile, handle: BackupHandle) -> Path:
        dest = (target / entry.path).resolve()
        if target.resolve() not in dest.parents:
            raise BackupCorruptedError(
                f"manifest path escapes the restore directory: {entry.path}",
                directory=handle.directory,
                name=handle.name,
                filename=entry.path
            )
        return dest

    async def _restore_file(self, handle: BackupHandle, filename: str, dest: Path) -> Tuple[str, int]:
        await self._run(functools.partial(dest.parent.mkdir, parents=True, exist_ok=True))
        hash_func = self._checksum.new_hash()
        size = 0
        out: BinaryIO = await self._run(open, dest, "wb")
        try:
            async with await handle.read_file(filename) as reader:
                async for chunk in reader:
                    hash_func.update(chunk)
                    await self._run(out.write, chunk)
                    size += len(chunk)
        finally:
            out.close()
        return hash_func.hexdigest(), size

    async def list_backups(self, directory: str) -> List[str]:
        """
        List the committed backups of a directory, oldest first.

        Returns:
            Backup names sorted ascending
        """
        handles = await self._storage.list_backups(directory)
        logger.info(f"Found {len(handles)} backups in {directory}")
        return [handle.name for handle in handles]

    async def remove_backup(self, directory: str, name: str) -> None:
        """
        Delete a backup.

        Raises:
            BackupNotFoundError: If the backup does not exist
        """
        await self._storage.remove_backup(directory, name)
        logger.info(f"Deleted backup {directory}/{name}")

    async def prune_backups(self, directory: str, keep: int) -> List[str]:
        """
        Remove the oldest backups of a directory beyond the newest ``keep``.

        At least min_backups_to_keep backups always survive.

        Args:
            directory: Backup directory
            keep: Number of most recent backups to keep

        Returns:
            Names of the removed backups, oldest first
        """
        policy = RetentionPolicy(retention_count=keep, min_backups_to_keep=self._config.min_backups_to_keep)
        _, to_delete = policy.split(await self.list_backups(directory))

        for name in to_delete:
            await self._storage.remove_backup(directory, name)
            logger.info(f"Pruned backup {directory}/{name}")

        return to_delete
