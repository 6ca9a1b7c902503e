"""
Shared fixtures: an isolated frame-art directory, settings pointing at it,
a scripted git runner for the sync engine, and real image bytes from Pillow.
"""
import io
import threading
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple, Union

import pytest
from PIL import Image

from frameart.adapters.git.git_cli import GitResult
from frameart.core.config import Settings
from frameart.core.errors import GitCommandError
from frameart.models.image import ImageRecord
from frameart.repositories.memory.document_backend import MemoryDocumentBackend
from frameart.repositories.metadata_store import MetadataStore
from frameart.services.image_service import ImageService


def image_bytes(fmt: str = "JPEG", size: Tuple[int, int] = (800, 600), color=(200, 80, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def make_settings(root: Path, **overrides) -> Settings:
    values = dict(
        FRAME_ART_PATH=root,
        SYNC_LOG_PATH=root.parent / f"{root.name}_sync_logs.json",
        AUTO_PULL_ON_STARTUP=False,
        AUTO_SYNC=False,
        REQUIRE_LFS=False,
        GIT_TIMEOUT_SECONDS=10,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def frame_dir(tmp_path) -> Path:
    root = tmp_path / "frame_art"
    (root / "library").mkdir(parents=True)
    (root / "thumbs").mkdir()
    return root


@pytest.fixture
def settings(frame_dir) -> Settings:
    return make_settings(frame_dir)


@pytest.fixture
def store() -> MetadataStore:
    s = MetadataStore(MemoryDocumentBackend())
    s.initialize()
    return s


@pytest.fixture
def images(store, settings) -> ImageService:
    return ImageService(store, settings)


def seed_image(svc: ImageService, filename: str, tags: Sequence[str] = (), **fields) -> None:
    """Place a library file + thumbnail and a matching record, bypassing upload."""
    (svc.library / filename).write_bytes(image_bytes(size=(40, 30)))
    (svc.thumbs / filename).write_bytes(image_bytes(size=(40, 30)))
    record = {"matte": "none", "filter": "none", "tags": list(tags),
              "dimensions": {"width": 40, "height": 30}, "aspectRatio": 1.33,
              "added": "2024-01-01T00:00:00.000Z", **fields}

    def insert(doc):
        doc.ensure_tags(list(tags))
        doc.images = {**doc.images, filename: ImageRecord.model_validate(record)}

    svc.store.mutate(insert)


Response = Union[GitResult, Callable[[List[str]], GitResult]]


class FakeGit:
    """
    Scripted stand-in for GitCLI. Rules match on an argument prefix; the longest
    matching prefix wins. A rule holding a list answers in order and then keeps
    repeating its last answer. Unmatched commands succeed with empty output.
    """

    def __init__(self, rules: Dict[Tuple[str, ...], Union[Response, List[Response]]] = None):
        self.rules = dict(rules or {})
        self.calls: List[List[str]] = []
        self._lock = threading.Lock()

    def set(self, prefix: Tuple[str, ...], response) -> None:
        self.rules[prefix] = response

    def called(self, *prefix: str) -> bool:
        return any(tuple(c[:len(prefix)]) == prefix for c in self.calls)

    def run(self, args: Sequence[str], check: bool = True) -> GitResult:
        args = list(args)
        with self._lock:
            self.calls.append(args)
            matches = [p for p in self.rules if tuple(args[:len(p)]) == p]
            response = None
            if matches:
                key = max(matches, key=len)
                rule = self.rules[key]
                if isinstance(rule, list):
                    response = rule.pop(0) if len(rule) > 1 else rule[0]
                else:
                    response = rule
        if callable(response):
            response = response(args)
        if response is None:
            response = ok()
        result = GitResult(args, response.returncode, response.stdout, response.stderr)
        if check and not result.ok:
            raise GitCommandError(args, result.returncode, result.stderr, result.stdout)
        return result


def ok(stdout: str = "") -> GitResult:
    return GitResult([], 0, stdout, "")


def fail(stderr: str = "error", returncode: int = 1) -> GitResult:
    return GitResult([], returncode, "", stderr)


def status(*entries: str, header: str = "## main...origin/main") -> GitResult:
    """Build `git status --porcelain -z` output from a header and 'XY path' entries."""
    return ok("\0".join([header, *entries]) + "\0")


def healthy_repo_rules() -> Dict[Tuple[str, ...], Response]:
    return {
        ("rev-parse", "--is-inside-work-tree"): ok("true\n"),
        ("remote", "get-url"): ok("git@github.com:someone/frame_art.git\n"),
        ("rev-parse", "--abbrev-ref", "HEAD"): ok("main\n"),
        ("status",): status(),
    }


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit(healthy_repo_rules())
