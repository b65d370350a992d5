"""決定的バケット割り当て"""

from __future__ import annotations

import zlib

BUCKET_COUNT = 100


def bucket(user_id: str, key: str) -> int:
    """user_id と key から [0, 100) の安定したバケット値を返す。

    "{user_id}:{key}" の UTF-8 バイト列に対する CRC32 を 100 で割った余り。
    他言語の SDK と同じ値になるためアルゴリズムを変えてはならない。
    """
    checksum = zlib.crc32(f"{user_id}:{key}".encode("utf-8"))
    return abs(checksum) % BUCKET_COUNT
