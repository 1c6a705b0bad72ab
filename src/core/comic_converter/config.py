from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

DEFAULT_CONFIG_PATH = Path("config.toml")


@dataclass(slots=True)
class JobsConfig:
    history_limit: int = 200
    poll_interval_s: float = 0.1


@dataclass(slots=True)
class RuntimeConfig:
    documents_root: Path = field(default_factory=lambda: Path("~/Documents").expanduser())
    output_folder: str = "ComicConverter"
    state_dir: Path = Path(".comic-converter")
    log_file: str = "log.jsonl"
    summary_csv: str = "summary.csv"
    enable_local_api: bool = False
    jobs: JobsConfig = field(default_factory=JobsConfig)

    @property
    def output_root(self) -> Path:
        return self.documents_root / self.output_folder


@dataclass(slots=True)
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    api: APIConfig = field(default_factory=APIConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _build_jobs(data: Mapping[str, object] | None) -> JobsConfig:
    if not data:
        return JobsConfig()
    return JobsConfig(
        history_limit=int(data.get("history_limit", 200)),
        poll_interval_s=float(data.get("poll_interval_s", 0.1)),
    )


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    jobs = _build_jobs(data.get("jobs") if isinstance(data.get("jobs"), Mapping) else None)
    return RuntimeConfig(
        documents_root=Path(str(data.get("documents_root", "~/Documents"))).expanduser(),
        output_folder=str(data.get("output_folder", "ComicConverter")),
        state_dir=Path(str(data.get("state_dir", ".comic-converter"))).expanduser(),
        log_file=str(data.get("log_file", "log.jsonl")),
        summary_csv=str(data.get("summary_csv", "summary.csv")),
        enable_local_api=bool(data.get("enable_local_api", False)),
        jobs=jobs,
    )


def _build_api(data: Mapping[str, object] | None) -> APIConfig:
    if not data:
        return APIConfig()
    return APIConfig(host=str(data.get("host", "127.0.0.1")), port=int(data.get("port", 8000)))


def load_config(path: Path | None = None) -> AppConfig:
    path = path or DEFAULT_CONFIG_PATH
    raw = _read_toml(path)
    runtime_data = raw.get("runtime") if isinstance(raw, Mapping) else None
    api_data = raw.get("api") if isinstance(raw, Mapping) else None
    runtime = _build_runtime(runtime_data if isinstance(runtime_data, Mapping) else None)
    api = _build_api(api_data if isinstance(api_data, Mapping) else None)
    return AppConfig(runtime=runtime, api=api)


def dump_config(config: AppConfig) -> str:
    payload = {
        "runtime": {
            "documents_root": str(config.runtime.documents_root),
            "output_folder": config.runtime.output_folder,
            "state_dir": str(config.runtime.state_dir),
            "log_file": config.runtime.log_file,
            "summary_csv": config.runtime.summary_csv,
            "enable_local_api": config.runtime.enable_local_api,
            "jobs": {
                "history_limit": config.runtime.jobs.history_limit,
                "poll_interval_s": config.runtime.jobs.poll_interval_s,
            },
        },
        "api": {
            "host": config.api.host,
            "port": config.api.port,
        },
    }
    return json.dumps(payload, indent=2)
