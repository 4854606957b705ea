from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import jsonschema

from .util import read_json

SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "stackgraph.config.schema.json"

DEFAULT_NON_RESOURCE_CLASSES = (
    "Alias",
    "AssetArchive",
    "Config",
    "CustomTimeouts",
    "FileArchive",
    "FileAsset",
    "InvokeOptions",
    "Output",
    "RemoteArchive",
    "RemoteAsset",
    "ResourceOptions",
    "StringAsset",
)


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 0
    ui_dir: Path | None = None


@dataclass(frozen=True)
class CaptureConfig:
    sdk_namespaces: tuple[str, ...] = ("pulumi",)
    project_name: str = "mock-project"
    stack_name: str = "mock-stack"
    non_resource_classes: frozenset[str] = frozenset(DEFAULT_NON_RESOURCE_CLASSES)
    input_type_suffixes: tuple[str, ...] = ("Args", "ArgsDict")
    unnamed_label: str = "<unnamed>"
    server: ServerConfig = field(default_factory=ServerConfig)


def default_config() -> CaptureConfig:
    return CaptureConfig()


def load_config(path: Path) -> CaptureConfig:
    raw = read_json(path)
    schema = read_json(SCHEMA_PATH)
    jsonschema.validate(instance=raw, schema=schema)

    defaults = CaptureConfig()
    base_dir = path.parent.resolve()

    server_raw = dict(raw.get("server", {}))
    ui_dir: Path | None = None
    if server_raw.get("ui_dir"):
        candidate = Path(str(server_raw["ui_dir"]))
        ui_dir = candidate.resolve() if candidate.is_absolute() else (base_dir / candidate).resolve()

    namespaces = tuple(raw.get("sdk_namespaces", defaults.sdk_namespaces))
    if len(set(namespaces)) != len(namespaces):
        raise ValueError(f"duplicate sdk_namespaces entries: {list(namespaces)}")

    return CaptureConfig(
        sdk_namespaces=namespaces,
        project_name=str(raw.get("project_name", defaults.project_name)),
        stack_name=str(raw.get("stack_name", defaults.stack_name)),
        non_resource_classes=frozenset(
            raw.get("non_resource_classes", defaults.non_resource_classes)
        ),
        input_type_suffixes=tuple(
            raw.get("input_type_suffixes", defaults.input_type_suffixes)
        ),
        unnamed_label=str(raw.get("unnamed_label", defaults.unnamed_label)),
        server=ServerConfig(
            host=str(server_raw.get("host", "127.0.0.1")),
            port=int(server_raw.get("port", 0)),
            ui_dir=ui_dir,
        ),
    )
