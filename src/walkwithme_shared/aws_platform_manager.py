#!/usr/bin/env python3
"""
Helper functions for reading configuration from the AWS platform.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

import boto3

""" AWS Parameter Store """


def _chunk(iterable: Iterable[str], size: int) -> Iterator[list[str]]:
    """
    Chunk an iterable into lists of size `size`.
    Used for SSM get_parameters batching because the API only allows up to 10 names at a time.
    """
    it = iter(iterable)
    while True:
        chunk = [x for _, x in zip(range(size), it, strict=False)]
        if not chunk:
            break
        yield chunk


def get_ssm_parameters(
    param_names: list[str],
    base_path: str,
    *,
    decrypt: bool = False,
    region_name: str = "us-east-1",
) -> dict[str, str | None]:
    """
    Retrieve parameters under `base_path` by leaf name.
    Returns a dict mapping each requested leaf name to its value (or None if missing).
    """
    # Pre-fill with None so missing params are explicit
    result: dict[str, str | None] = {name.lower(): None for name in param_names}
    if not param_names:
        return result

    ssm = boto3.client("ssm", region_name=region_name)

    # Normalize base_path (exactly one trailing slash)
    base = base_path.rstrip("/") + "/"
    leaf_by_full = {base + name.lower(): name.lower() for name in param_names}

    for group in _chunk(leaf_by_full.keys(), 10):  # SSM get_parameters max 10 names
        resp = ssm.get_parameters(Names=group, WithDecryption=decrypt)

        for p in resp.get("Parameters", []):
            full = p["Name"]
            leaf = leaf_by_full.get(full, full)
            result[leaf] = p["Value"]

    return result
