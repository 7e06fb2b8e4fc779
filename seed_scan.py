#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Seed permutation scanner for Imgur image hashes, with resume.

Key features:
- expand: generate every character permutation of a seed and store it as the
  seed's work queue in a JSON document (--storage)
- traverse: look up queued candidates one by one against the Imgur API,
  paced (--sleep-ms), checkpointing the remaining queue after every lookup
- status: remaining candidates per seed
- probe-link: check direct image links (image/png, not the removed placeholder)

Credentials: IMGUR_CLIENT_ID from the environment or a .env file (--dotenv),
or --client-id.

Examples:
  python seed_scan.py expand vEdyJfO
  python seed_scan.py --storage ./storage.json traverse vEdyJfO --found-out found.jsonl
  python seed_scan.py probe-link https://i.imgur.com/VWTkvqj.png
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from dotenv import load_dotenv

from link_check import build_requests_session, check_link
from lookup import DEFAULT_BASE_URL, ImgurClient, LookupResult
from queue_store import PersistenceError, QueueStore
from traversal import MissingQueueError, SeedExpander, TraversalController


@dataclasses.dataclass
class ScanConfig:
    storage_path: Path
    client_id: str = ""
    base_url: str = DEFAULT_BASE_URL
    sleep_ms: int = 1000
    timeout_s: float = 20.0
    max_attempts: int = 3
    backoff_base_s: float = 0.8
    backoff_jitter_s: float = 0.2
    found_out: Optional[Path] = None


# ---------------------------
# Found output (append-safe)
# ---------------------------

class FoundWriter:
    """Opens the JSONL file on the first found result only."""

    def __init__(self, path: Path):
        self.path = path
        self._jsonl = None

    def write(self, result: LookupResult) -> None:
        if self._jsonl is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._jsonl = self.path.open("a", encoding="utf-8", newline="\n")
        row = {
            "candidate": result.candidate,
            "checked_at": result.checked_at,
            "http_status": result.http_status,
            "payload": result.payload,
        }
        self._jsonl.write(json.dumps(row, ensure_ascii=False) + "\n")
        self._jsonl.flush()

    def close(self) -> None:
        if self._jsonl is not None:
            self._jsonl.close()
            self._jsonl = None


# ---------------------------
# Commands
# ---------------------------

async def traverse_async(cfg: ScanConfig, seed: str, log: logging.Logger) -> List[Dict[str, Any]]:
    store = QueueStore(cfg.storage_path, logger=log)
    writer = FoundWriter(cfg.found_out) if cfg.found_out else None
    try:
        async with ImgurClient(
            cfg.client_id,
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
            max_attempts=cfg.max_attempts,
            backoff_base_s=cfg.backoff_base_s,
            backoff_jitter_s=cfg.backoff_jitter_s,
            logger=log,
        ) as client:
            controller = TraversalController(
                store,
                client,
                pacing_s=cfg.sleep_ms / 1000.0,
                on_found=writer.write if writer else None,
                logger=log,
            )
            return await controller.traverse(seed)
    finally:
        if writer:
            writer.close()


def cmd_expand(args: argparse.Namespace, log: logging.Logger) -> int:
    SeedExpander(QueueStore(args.storage, logger=log), logger=log).expand(args.seed)
    return 0


def cmd_traverse(args: argparse.Namespace, log: logging.Logger) -> int:
    if args.sleep_ms < 0:
        raise SystemExit("--sleep-ms must be >= 0")
    cfg = ScanConfig(
        storage_path=Path(args.storage),
        client_id=args.client_id or require_env("IMGUR_CLIENT_ID"),
        base_url=args.base_url,
        sleep_ms=args.sleep_ms,
        timeout_s=args.timeout_s,
        max_attempts=args.max_attempts,
        backoff_base_s=args.backoff_base_s,
        backoff_jitter_s=args.backoff_jitter_s,
        found_out=Path(args.found_out) if args.found_out else None,
    )
    found = asyncio.run(traverse_async(cfg, args.seed, log))
    print(json.dumps(found, ensure_ascii=False, indent=2))
    return 0


def cmd_status(args: argparse.Namespace, log: logging.Logger) -> int:
    remaining = QueueStore(args.storage, logger=log).remaining()
    if args.seed is not None:
        if args.seed not in remaining:
            raise MissingQueueError(args.seed)
        remaining = {args.seed: remaining[args.seed]}
    for seed, count in remaining.items():
        print(f"{seed}\t{count}{'' if count else ' (exhausted)'}")
    return 0


def cmd_probe_link(args: argparse.Namespace, log: logging.Logger) -> int:
    session = build_requests_session(args.timeout_s, args.max_retries)
    try:
        for link in args.links:
            ok = check_link(session, link, logger=log)
            print(f"{link}\t{str(ok).lower()}")
    finally:
        session.close()
    return 0


# ---------------------------
# Setup
# ---------------------------

def configure_logging(verbosity: int) -> logging.Logger:
    level = logging.INFO
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 0:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("seed_scan")


def require_env(var: str) -> str:
    v = os.getenv(var, "").strip()
    if not v:
        raise SystemExit(f"Missing required environment variable: {var}")
    return v


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser("seed-scan", description="Expand a seed into permutations and look them up on Imgur, with resume.")
    p.add_argument("--storage", default="./storage.json", help="Queue document path (default: ./storage.json)")
    p.add_argument("--dotenv", default=None, help="Path to .env file (default: search for .env)")
    p.add_argument("-v", "--verbose", action="count", default=1, help="Increase verbosity (use -vv for debug)")
    sub = p.add_subparsers(dest="command", required=True)

    e = sub.add_parser("expand", help="Store all permutations of SEED as its work queue")
    e.add_argument("seed")
    e.set_defaults(func=cmd_expand)

    t = sub.add_parser("traverse", help="Look up the stored queue of SEED, resuming where it stopped")
    t.add_argument("seed")
    t.add_argument("--client-id", default=None, help="Imgur Client-ID (default: $IMGUR_CLIENT_ID)")
    t.add_argument("--base-url", default=DEFAULT_BASE_URL, help=f"Image endpoint (default: {DEFAULT_BASE_URL})")
    t.add_argument("--sleep-ms", type=int, default=1000, help="Delay after every lookup in ms (default: 1000)")
    t.add_argument("--timeout-s", type=float, default=20.0)
    t.add_argument("--max-attempts", type=int, default=3, help="Attempts per candidate on transport errors (default: 3)")
    t.add_argument("--backoff-base-s", type=float, default=0.8)
    t.add_argument("--backoff-jitter-s", type=float, default=0.2)
    t.add_argument("--found-out", default=None, help="Append found results to this JSONL file")
    t.set_defaults(func=cmd_traverse)

    s = sub.add_parser("status", help="Show remaining candidates per seed")
    s.add_argument("seed", nargs="?", default=None)
    s.set_defaults(func=cmd_status)

    lk = sub.add_parser("probe-link", help="Check direct image links")
    lk.add_argument("links", nargs="+")
    lk.add_argument("--timeout-s", type=float, default=20.0)
    lk.add_argument("--max-retries", type=int, default=3)
    lk.set_defaults(func=cmd_probe_link)
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    log = configure_logging(args.verbose)
    load_dotenv(dotenv_path=args.dotenv, override=False)

    try:
        return args.func(args, log)
    except (MissingQueueError, PersistenceError, ValueError) as e:
        log.error("%s", e)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
