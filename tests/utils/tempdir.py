import bz2
import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path


@contextmanager
def managed_temp_dir(prefix: str, root: str = "tests/tmp"):
    tmp_path = Path(root) / f"{prefix}_{uuid.uuid4().hex}"
    tmp_path.mkdir(parents=True, exist_ok=True)
    try:
        yield tmp_path
    finally:
        shutil.rmtree(tmp_path, ignore_errors=True)


def write_dump(directory: Path, name: str, payload: bytes) -> Path:
    """Write dump bytes under `directory`, bz2-compressed when `name` ends with .bz2."""
    path = directory / name
    path.write_bytes(bz2.compress(payload) if path.suffix == ".bz2" else payload)
    return path
