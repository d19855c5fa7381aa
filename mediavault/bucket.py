# mediavault/bucket.py
"""Object storage for media files: a filesystem root or an S3-compatible bucket.

`list()` is a plain generator and does blocking I/O; the sync pipeline runs it
through `asyncio.to_thread`.
"""
from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

import boto3
from botocore.config import Config as BotoConfig

from .config import BucketConfig, RewriteRule
from .errors import MediaVaultError

log = logging.getLogger("sync")


class NoBucket(MediaVaultError):
    code = "no-bucket-configuration"


@dataclass
class BucketObject:
    key: str
    path: str  # key after rewrite rules
    etag: str
    size: int
    last_modified: datetime  # naive UTC


def rewrite(rules: List[RewriteRule], path: str) -> str:
    """Apply rules in order; a matching rule replaces the whole value, $0..$n expand to groups."""
    result = path
    for rule in rules:
        m = re.search(rule.pattern, result)
        if m is None:
            continue
        groups = [m.group(0)] + list(m.groups())
        out = rule.replace
        # replace higher group numbers first so $1 doesn't clobber $10
        for i in range(len(groups) - 1, -1, -1):
            out = out.replace(f"${i}", groups[i] or "")
        result = out
    if result != path:
        log.debug("rewrite %s -> %s", path, result)
    return result


def md5_file(path: str) -> str:
    h = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


class Bucket:
    def __init__(self, config: BucketConfig):
        self.config = config

    def list(self, since: Optional[datetime] = None) -> Iterator[BucketObject]:
        raise NotImplementedError

    def object_url(self, key: str) -> str:
        raise NotImplementedError

    def is_local(self) -> bool:
        raise NotImplementedError


class FSBucket(Bucket):
    def is_local(self) -> bool:
        return True

    def list(self, since: Optional[datetime] = None) -> Iterator[BucketObject]:
        since = _naive_utc(since) if since else None
        for dirpath, _dirs, files in os.walk(self.config.fs_root):
            for name in sorted(files):
                path = os.path.join(dirpath, name)
                if not os.path.isfile(path):
                    continue
                st = os.stat(path)
                modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).replace(tzinfo=None)
                if since is not None and modified <= since:
                    continue
                try:
                    etag = md5_file(path)
                except OSError as e:
                    log.warning("etag %s: %s", path, e)
                    continue
                yield BucketObject(
                    key=path,
                    path=rewrite(self.config.rewrite_rules, path),
                    etag=etag,
                    size=st.st_size,
                    last_modified=modified,
                )

    def object_url(self, key: str) -> str:
        return "file://" + key


class S3Bucket(Bucket):
    def __init__(self, config: BucketConfig):
        super().__init__(config)
        self.s3 = boto3.client(
            "s3",
            endpoint_url=config.endpoint if "://" in config.endpoint
            else ("https://" if config.use_ssl else "http://") + config.endpoint,
            region_name=config.region or None,
            aws_access_key_id=config.access_key_id or None,
            aws_secret_access_key=config.secret_access_key or None,
            config=BotoConfig(s3={"addressing_style": "path"}),
        )

    def is_local(self) -> bool:
        return self.config.local

    def list(self, since: Optional[datetime] = None) -> Iterator[BucketObject]:
        since = _naive_utc(since) if since else None
        paginator = self.s3.get_paginator("list_objects_v2")
        pages = paginator.paginate(Bucket=self.config.bucket_name, Prefix=self.config.object_prefix)
        for page in pages:
            for obj in page.get("Contents", []):
                modified = _naive_utc(obj["LastModified"])
                if since is not None and modified <= since:
                    continue
                key = obj["Key"]
                yield BucketObject(
                    key=key,
                    path=rewrite(self.config.rewrite_rules, key),
                    etag=obj.get("ETag", "").strip('"'),
                    size=int(obj.get("Size", 0)),
                    last_modified=modified,
                )

    def object_url(self, key: str) -> str:
        expires = timedelta(minutes=self.config.url_expiration_minutes)
        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.config.bucket_name, "Key": key},
            ExpiresIn=int(expires.total_seconds()),
        )


def open_bucket(config: BucketConfig) -> Bucket:
    if config.fs_root:
        return FSBucket(config)
    if config.endpoint:
        return S3Bucket(config)
    raise NoBucket()


def open_media_buckets(buckets: List[BucketConfig], media_type: str) -> List[Bucket]:
    return [open_bucket(b) for b in buckets if b.media == media_type]
