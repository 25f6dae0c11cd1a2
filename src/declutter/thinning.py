"""Architecture slimming of universal binaries as a backup/restore transaction."""

import os
import shutil
import subprocess
from enum import Enum
from pathlib import Path
from typing import Callable

from loguru import logger

from declutter.errors import TransformValidationFailure
from declutter.models import ThinningResult

BACKUP_SUFFIX = ".declutter-backup"
TOOL_TIMEOUT = 120


class TransactionState(str, Enum):
    IDLE = "idle"
    BACKED_UP = "backed_up"
    TRANSFORMED = "transformed"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


def lipo_thin(path: Path, arch: str) -> None:
    """Replace a universal binary with its single-architecture slice."""
    output = path.with_name(path.name + ".thin")
    try:
        subprocess.run(
            ["lipo", str(path), "-thin", arch, "-output", str(output)],
            check=True,
            capture_output=True,
            text=True,
            timeout=TOOL_TIMEOUT,
        )
        os.replace(output, path)
    except (subprocess.SubprocessError, OSError) as e:
        output.unlink(missing_ok=True)
        raise TransformValidationFailure(f"lipo failed: {e}") from e


def codesign_validate(path: Path) -> None:
    """Re-sign ad hoc and verify the signature of a transformed binary."""
    for argv in (
        ["codesign", "--force", "--sign", "-", str(path)],
        ["codesign", "--verify", str(path)],
    ):
        try:
            subprocess.run(argv, check=True, capture_output=True, text=True, timeout=TOOL_TIMEOUT)
        except (subprocess.SubprocessError, OSError) as e:
            raise TransformValidationFailure(f"{argv[1]} failed: {e}") from e


class ThinningTransaction:
    """Scoped backup of one file.

    Entering copies the file aside. ``commit`` discards the copy; leaving
    the block without committing restores it.
    """

    def __init__(self, path: Path):
        self.path = path
        self.backup = path.with_name(path.name + BACKUP_SUFFIX)
        self.state = TransactionState.IDLE
        self.original_size = 0

    def __enter__(self) -> "ThinningTransaction":
        self.original_size = self.path.stat().st_size
        try:
            shutil.copy2(self.path, self.backup)
        except OSError:
            self.backup.unlink(missing_ok=True)
            raise
        self.state = TransactionState.BACKED_UP
        return self

    def mark_transformed(self) -> None:
        self.state = TransactionState.TRANSFORMED

    def commit(self) -> None:
        self.backup.unlink(missing_ok=True)
        self.state = TransactionState.COMMITTED

    def rollback(self) -> None:
        os.replace(self.backup, self.path)
        self.state = TransactionState.ROLLED_BACK

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self.state != TransactionState.COMMITTED:
            self.rollback()
        return False


class BinaryThinner:
    """Strip unused architectures from a binary without ever losing it.

    Args:
        arch: Architecture slice to keep
        transform: Rewrites the file in place for an architecture
        validate: Raises TransformValidationFailure if the result is unusable
    """

    def __init__(
        self,
        arch: str = "arm64",
        transform: Callable[[Path, str], None] = lipo_thin,
        validate: Callable[[Path], None] = codesign_validate,
    ):
        self.arch = arch
        self.transform = transform
        self.validate = validate

    def thin(self, path: str | Path) -> ThinningResult:
        target = Path(path)
        result = ThinningResult(path=str(target))

        if not target.is_file():
            result.error = "Not a file"
            return result

        txn = ThinningTransaction(target)
        try:
            with txn:
                result.original_size = txn.original_size
                self.transform(target, self.arch)
                txn.mark_transformed()
                self.validate(target)
                result.new_size = target.stat().st_size
                txn.commit()
        except TransformValidationFailure as e:
            logger.warning("Thinning {} rolled back: {}", target, e)
            result.error = str(e)
            result.new_size = result.original_size
            result.rolled_back = txn.state == TransactionState.ROLLED_BACK
            return result
        except OSError as e:
            logger.warning("Thinning {} failed: {}", target, e)
            result.error = str(e)
            result.new_size = result.original_size
            result.rolled_back = txn.state == TransactionState.ROLLED_BACK
            return result

        result.success = True
        logger.info("Thinned {} from {} to {} bytes", target, result.original_size, result.new_size)
        return result
