"""
Static pod manifests.

Pods described by YAML files in a directory are started when the node agent
boots. A container's ``image`` is a path, relative to the manifest, to a
WebAssembly binary (``.wasm``) or text (``.wat``) module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from wasmtime import WasmtimeError, wat2wasm

from wasilet.modules.runtime import ModuleConfig

logger = logging.getLogger("wasilet.provider.static_pods")

MANIFEST_SUFFIXES = (".yaml", ".yml")


class EnvVar(BaseModel):
    name: str
    value: str = ""


class VolumeMount(BaseModel):
    name: str
    mountPath: str


class HostPathSource(BaseModel):
    path: str


class Volume(BaseModel):
    name: str
    hostPath: Optional[HostPathSource] = None


class ContainerSpec(BaseModel):
    name: str
    image: str
    command: List[str] = Field(default_factory=list)
    args: List[str] = Field(default_factory=list)
    env: List[EnvVar] = Field(default_factory=list)
    volumeMounts: List[VolumeMount] = Field(default_factory=list)


class PodSpec(BaseModel):
    containers: List[ContainerSpec]
    volumes: List[Volume] = Field(default_factory=list)


class PodMetadata(BaseModel):
    name: str
    namespace: str = "default"


class PodManifest(BaseModel):
    apiVersion: str = "v1"
    kind: str = "Pod"
    metadata: PodMetadata
    spec: PodSpec

    @field_validator("kind")
    @classmethod
    def kind_must_be_pod(cls, v: str) -> str:
        if v != "Pod":
            raise ValueError("kind must be 'Pod'")
        return v


@dataclass(frozen=True)
class StaticContainer:
    """One container of a static pod, ready to be started."""

    namespace: str
    pod: str
    container: str
    config: ModuleConfig


def read_module(path: Path) -> bytes:
    """
    Read a module from disk, compiling WebAssembly text to binary.

    Raises:
        ValueError: The text module does not compile
    """
    if path.suffix == ".wat":
        try:
            return wat2wasm(path.read_text(encoding="utf-8"))
        except WasmtimeError as e:
            raise ValueError(f"invalid WebAssembly text in {path}: {e}") from e
    return path.read_bytes()


def _resolve_image(image: str, base_dir: Path) -> Path:
    if image.startswith("file://"):
        image = image[len("file://"):]
    path = Path(image)
    return path if path.is_absolute() else base_dir / path


def _mounts(container: ContainerSpec, volumes: Dict[str, Volume]) -> Dict[Path, Optional[Path]]:
    mounts: Dict[Path, Optional[Path]] = {}
    for mount in container.volumeMounts:
        volume = volumes.get(mount.name)
        if volume is None or volume.hostPath is None:
            logger.warning(
                "Skipping volume mount %s of container %s: only hostPath volumes are supported",
                mount.name, container.name,
            )
            continue
        mounts[Path(volume.hostPath.path)] = Path(mount.mountPath)
    return mounts


def load_manifest(path: Path) -> List[StaticContainer]:
    """
    Parse one pod manifest into startable containers.

    Raises:
        ValueError: The manifest or one of its modules is invalid
        OSError: A file could not be read
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("a pod manifest must be a mapping")
    manifest = PodManifest(**data)
    volumes = {volume.name: volume for volume in manifest.spec.volumes}

    containers = []
    for container in manifest.spec.containers:
        module_bytes = read_module(_resolve_image(container.image, path.parent))
        config = ModuleConfig(
            module_bytes=module_bytes,
            env={var.name: var.value for var in container.env},
            args=tuple(container.command + container.args),
            directory_mounts=_mounts(container, volumes),
        )
        containers.append(
            StaticContainer(
                namespace=manifest.metadata.namespace,
                pod=manifest.metadata.name,
                container=container.name,
                config=config,
            )
        )
    return containers


def load_static_pods(directory: str) -> List[StaticContainer]:
    """Load every manifest in ``directory``; invalid ones are logged and skipped."""
    root = Path(directory)
    if not root.is_dir():
        logger.warning("Static pod directory %s does not exist", directory)
        return []

    containers: List[StaticContainer] = []
    for path in sorted(root.iterdir()):
        if path.suffix not in MANIFEST_SUFFIXES:
            continue
        try:
            containers.extend(load_manifest(path))
        except (ValueError, OSError, yaml.YAMLError) as e:
            logger.error("Skipping invalid pod manifest %s: %s", path, e)
    return containers
