"""
Transaction files.

Transactions are stored as pretty-printed ledger JSON with a trailing newline.
Files are replaced atomically so that an interrupted write never leaves a
partial transaction on disk.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from walrus_cli.errors import InvalidInputError
from walrus_cli.wallet.types import Transaction


def read_txn(path: Path | str) -> Transaction:
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise InvalidInputError(f"Could not read transaction file {path}: {e}") from e
    try:
        return Transaction.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        raise InvalidInputError(f"Could not parse transaction file {path}: {e}") from e


def write_txn(path: Path | str, txn: Transaction) -> None:
    path = Path(path)
    data = txn.to_json() + "\n"
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise InvalidInputError(f"Could not write transaction to {path}: {e}") from e


def signed_path(path: Path | str) -> Path:
    """``txn.json`` -> ``txn-signed.json``"""
    path = Path(path)
    return path.with_name(f"{path.stem}-signed{path.suffix}")
