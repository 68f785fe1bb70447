from __future__ import annotations

import base64
import hashlib
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Tuple

from .base import CrawlOutput, RecordBody, RecordIdentifier, canonical_json, sha256_hexdigest


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _decode_body(body: RecordBody) -> Dict[str, Any]:
    """Map raw bytes to the JSON fields of a record line.

    JSON bodies are embedded as objects, other UTF-8 text as a string, and
    anything else as base64 so no byte is lost.
    """
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return {"body": None, "body_base64": base64.b64encode(body).decode("ascii")}
    try:
        return {"body": json.loads(text)}
    except ValueError:
        return {"body": text}


def record_to_dict(case_id: RecordIdentifier, body: RecordBody, category: str) -> Dict[str, Any]:
    fields = _decode_body(body)
    parsed = fields["body"]
    if parsed is not None and not isinstance(parsed, str):
        content_hash = sha256_hexdigest(canonical_json(parsed))
    else:
        content_hash = hashlib.sha256(body).hexdigest()
    rec: Dict[str, Any] = {"id": case_id, "category": category, "content_hash": content_hash}
    rec.update(fields)
    return rec


def write_jsonl(records: Iterable[Dict], out_dir: str, filename_prefix: str, *, stamp: str) -> str:
    """Write records to a JSONL file, one object per line, and return its path.

    No dedupe: a case number returned twice upstream is written twice.
    """
    ensure_dir(out_dir)
    path = os.path.join(out_dir, f"{filename_prefix}-{stamp}.jsonl")
    with open(path, "a", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")
    return path


def write_run_output(output: CrawlOutput, out_dir: str) -> Tuple[str, str, str]:
    """Write records, failed cases and failed states of a run.

    Returns (records_path, failed_records_path, failed_partitions_path).
    """
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    category = output.category.value
    records_path = write_jsonl(
        (record_to_dict(i, body, category) for i, body in output.records),
        out_dir,
        f"records-{category}",
        stamp=stamp,
    )
    failed_records_path = write_jsonl(
        (f.to_dict("id") for f in output.failed_records),
        out_dir,
        f"failed-records-{category}",
        stamp=stamp,
    )
    failed_partitions_path = write_jsonl(
        (f.to_dict("partition") for f in output.failed_partitions),
        out_dir,
        f"failed-partitions-{category}",
        stamp=stamp,
    )
    return records_path, failed_records_path, failed_partitions_path
