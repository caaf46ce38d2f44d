"""
billing_core.sources
Where raw bill payloads come from.

The exporter only needs `async fetch(kind, params) -> list[dict]`. The HTTP
API client lives outside this package; StaticSource and FileSource cover
tests and offline runs.
"""
from __future__ import annotations
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union
import pandas as pd
from .errors import FetchFailure

log = logging.getLogger(__name__)

Payload = List[Dict[str, Any]]


class BillSource(Protocol):
    async def fetch(self, kind: str, params: Mapping[str, Any]) -> Payload:
        ...


def unwrap_envelope(body: Any, kind: str = "") -> Payload:
    """Accept a bare list or the API envelope {"status": "success", "data": [...]}."""
    if isinstance(body, Mapping):
        status = body.get("status")
        if status is not None and str(status).lower() != "success":
            raise FetchFailure(f"{kind}: upstream status {status!r}: {body.get('message', '')}".strip(), kind)
        body = body.get("data", [])
    if body is None:
        return []
    if not isinstance(body, list):
        raise FetchFailure(f"{kind}: expected a list of records, got {type(body).__name__}", kind)
    return body


class StaticSource:
    """In-memory payloads keyed by report kind (or by (kind, group))."""

    def __init__(self, payloads: Mapping[Any, Any], delay: float = 0.0):
        self.payloads = dict(payloads)
        self.delay = delay
        self.calls: List[tuple] = []

    async def fetch(self, kind: str, params: Mapping[str, Any]) -> Payload:
        group = params.get("group")
        self.calls.append((kind, group))
        if self.delay:
            await asyncio.sleep(self.delay)
        key = (kind, group) if (kind, group) in self.payloads else kind
        if key not in self.payloads:
            raise FetchFailure(f"No payload for {kind}" + (f" / {group}" if group else ""), kind)
        body = self.payloads[key]
        if isinstance(body, Exception):
            raise body
        return unwrap_envelope(body, kind)


class FileSource:
    """
    Payload files in a directory: <kind>.json or <kind>.csv (and
    <kind>.<group>.json/.csv when fetching a specific group).
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _find(self, kind: str, group: Optional[str]) -> Path:
        stems = [f"{kind}.{group}", kind] if group else [kind]
        for stem in stems:
            for ext in (".json", ".csv"):
                p = self.directory / f"{stem}{ext}"
                if p.exists():
                    return p
        raise FetchFailure(f"No payload file for {kind} in {self.directory}", kind)

    def load(self, kind: str, group: Optional[str] = None) -> Payload:
        path = self._find(kind, group)
        log.info("Loading %s payload: %s", kind, path)
        try:
            if path.suffix == ".csv":
                return load_csv(path)
            with path.open("r", encoding="utf-8") as f:
                body = json.load(f)
        except (OSError, ValueError, pd.errors.ParserError) as exc:
            raise FetchFailure(f"{path.name}: {exc}", kind) from exc
        return unwrap_envelope(body, kind)

    async def fetch(self, kind: str, params: Mapping[str, Any]) -> Payload:
        return await asyncio.to_thread(self.load, kind, params.get("group"))


def load_csv(path: Union[str, Path]) -> Payload:
    """CSV -> list of row dicts; every cell kept as text, blanks become None."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]
    df = df.apply(lambda col: col.str.strip())
    rows = df.to_dict(orient="records")
    return [{k: (v if v != "" else None) for k, v in row.items()} for row in rows]
