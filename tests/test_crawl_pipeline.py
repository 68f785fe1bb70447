from namus_crawler.crawl.base import Category, CrawlOutput, StageFailure, sha256_hexdigest, canonical_json
from namus_crawler.crawl.errors import StatusError, TransportError
from namus_crawler.crawl.pipeline import record_to_dict, write_run_output

import base64
import hashlib
import os
import json


def _read(path):
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(l) for l in f if l.strip()]


def test_write_run_output_writes_three_jsonl_files(tmp_path):
    output = CrawlOutput(
        category=Category.MISSING,
        records=[(1, b'{"b": 2, "a": 1}'), (1, b'{"b": 2, "a": 1}'), (3, b"not json")],
        failed_records=[StageFailure(item=2, error=StatusError(404, url="https://x/Cases/2"))],
        failed_partitions=[StageFailure(item="Texas", error=TransportError("refused"))],
        partitions_seen=2,
        identifiers_seen=4,
    )
    records_path, failed_records_path, failed_partitions_path = write_run_output(output, str(tmp_path))

    assert all(os.path.isfile(p) for p in (records_path, failed_records_path, failed_partitions_path))
    assert os.path.basename(records_path).startswith("records-MissingPersons-")

    records = _read(records_path)
    # duplicates are kept
    assert [r["id"] for r in records] == [1, 1, 3]
    assert records[0]["body"] == {"a": 1, "b": 2}
    assert records[0]["category"] == "MissingPersons"
    assert records[2]["body"] == "not json"

    assert _read(failed_records_path) == [{"id": 2, "kind": "status", "error": "HTTP 404 (https://x/Cases/2)"}]
    assert _read(failed_partitions_path) == [{"partition": "Texas", "kind": "transport", "error": "refused"}]


def test_record_hash_ignores_key_order():
    a = record_to_dict(1, b'{"a": 1, "b": 2}', "MissingPersons")
    b = record_to_dict(1, b'{"b":2,"a":1}', "MissingPersons")
    assert a["content_hash"] == b["content_hash"] == sha256_hexdigest(canonical_json({"a": 1, "b": 2}))


def test_non_utf8_body_is_kept_as_base64():
    raw = b'{"name": "Jos\xe9"}'
    rec = record_to_dict(4, raw, "MissingPersons")
    assert rec["body"] is None
    assert base64.b64decode(rec["body_base64"]) == raw
    assert rec["content_hash"] == hashlib.sha256(raw).hexdigest()
