import os
from pathlib import Path
from tempfile import mkstemp


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = mkstemp(suffix=path.suffix, prefix=path.name + ".tmp", dir=path.parent)
    tmp_path = Path(tmp)
    try:
        with os.fdopen(fd, "wb") as f:
            _ = f.write(data)

        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)
