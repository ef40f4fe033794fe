from __future__ import annotations

from staffsync.domain.hashing import canonical_json, content_hash


def test_content_hash_ignores_key_order() -> None:
    first = {"id": "e1", "salary": {"month_wage": 2800, "hour_wage": 16.28}, "tags": ["a", "b"]}
    second = {"tags": ["a", "b"], "salary": {"hour_wage": 16.28, "month_wage": 2800}, "id": "e1"}

    assert content_hash(first) == content_hash(second)


def test_content_hash_is_sensitive_to_list_order_and_values() -> None:
    base = {"items": [1, 2]}

    assert content_hash(base) != content_hash({"items": [2, 1]})
    assert content_hash(base) != content_hash({"items": [1, 3]})


def test_canonical_json_is_compact_and_keeps_unicode() -> None:
    assert canonical_json({"b": 1, "a": "Zoë"}) == '{"a":"Zoë","b":1}'


def test_content_hash_is_sha256_hex() -> None:
    digest = content_hash({"a": 1})

    assert len(digest) == 64
    assert all(char in "0123456789abcdef" for char in digest)
