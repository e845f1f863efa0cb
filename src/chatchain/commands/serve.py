from pathlib import Path

import uvicorn

from chatchain.runtime import open_runtime
from chatchain.server import create_app


def serve(
    host: str,
    port: int,
    static_dir: Path | None = None,
    data_dir: Path | None = None,
    kv_url: str | None = None,
) -> None:
    settings, runtime = open_runtime(static_dir=static_dir, data_dir=data_dir, kv_url=kv_url)
    app = create_app(runtime, settings)
    # One worker: the runtime is the only owner of the conversation state
    uvicorn.run(app, host=host, port=port, workers=1, log_level=settings.log_level)
