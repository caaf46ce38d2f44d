"""
billing_core.paths
Output folder helpers.
"""
from __future__ import annotations
from pathlib import Path
from typing import Optional, Union
from .config import DEFAULT_OUTPUT_DIR

OUTPUT_KINDS = ("xlsx", "pdf", "logs")

def output_dir(kind: str, base: Optional[Union[str, Path]] = None) -> Path:
    k = kind.lower()
    if k not in OUTPUT_KINDS:
        raise ValueError(f"Unknown output kind: {kind}")
    d = Path(base if base is not None else DEFAULT_OUTPUT_DIR) / k
    d.mkdir(parents=True, exist_ok=True)
    return d

def out_path(kind: str, filename: str, base: Optional[Union[str, Path]] = None) -> Path:
    return output_dir(kind, base) / filename
