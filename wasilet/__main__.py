from typing import Optional

import click
import uvicorn
from dotenv import load_dotenv

from wasilet.logging_config import get_logging_config
from wasilet.modules.config import get_config

load_dotenv()


@click.group()
def main():
    """Wasilet - run WebAssembly modules as Kubernetes workloads."""


@main.command()
@click.option("--host", "host", default=None, help="Bind address (WASILET_HOST)")
@click.option("--port", "port", type=int, default=None, help="Listen port (WASILET_PORT)")
@click.option(
    "--static-pod-dir",
    "static_pod_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory of pod manifests to start at boot (WASILET_STATIC_POD_DIR)",
)
def serve(host: Optional[str], port: Optional[int], static_pod_dir: Optional[str]):
    """Serve the kubelet API and run static pods."""
    config = get_config()
    if host is not None:
        config.set("host", host)
    if port is not None:
        config.set("port", port)
    if static_pod_dir is not None:
        config.set("static_pod_dir", static_pod_dir)

    ssl_options = {}
    if config.tls_enabled:
        ssl_options = {
            "ssl_certfile": config.get("cert_file"),
            "ssl_keyfile": config.get("private_key_file"),
        }

    # Use dict config for logging, not file path
    uvicorn.run(
        "wasilet.main:app",
        host=config.get("host"),
        port=config.get("port"),
        log_level=config.get("log_level").lower(),
        log_config=get_logging_config(config.get("log_level"), config.get("runtime_log_level")),
        **ssl_options,
    )


if __name__ == "__main__":
    main()
