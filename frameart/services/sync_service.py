"""
SyncEngine: the working tree's relationship to its remote.

    UNVERIFIED -> VERIFIED -> {CLEAN, DIRTY, AHEAD, BEHIND, DIVERGED} -> SYNCING -> {CLEAN | CONFLICT}

All git commands run on one dedicated worker thread, so status/pull/push/mv are
never issued concurrently against the working tree. Callers wait with a timeout;
on expiry they get SyncTimeoutError while the operation runs to completion in
the background (git transfers are not safely interruptible).
"""

from __future__ import annotations
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from frameart.adapters.git.git_cli import GitCLI
from frameart.adapters.git.porcelain import FileStatus, StatusSnapshot, parse_name_status_z, parse_status_z
from frameart.core.config import Settings, settings as default_settings
from frameart.core.errors import (
    ConfigurationError,
    ConflictError,
    CorruptStoreError,
    GitCommandError,
    NotFoundError,
    SyncTimeoutError,
)
from frameart.models.sync import ChangeSummary, RepoStatus, SyncLogEntry, SyncOutcome, SyncState, Verification
from frameart.repositories.file.sync_log_repo import SyncLogRepo
from frameart.services.change_classifier import METADATA_FILE, classify, managed_paths
from frameart.services.commit_message import build_commit_message, diff_metadata
from frameart.utils.jsonio import read_json

logger = logging.getLogger(__name__)

_REJECTION_MARKERS = ("rejected", "non-fast-forward", "fetch first")
_CONFLICT_MARKERS = ("CONFLICT", "conflict", "Not possible to fast-forward", "diverg")


def derive_state(snapshot: StatusSnapshot) -> SyncState:
    if snapshot.conflicted:
        return SyncState.CONFLICT
    if snapshot.entries:
        return SyncState.DIRTY
    if snapshot.ahead and snapshot.behind:
        return SyncState.DIVERGED
    if snapshot.ahead:
        return SyncState.AHEAD
    if snapshot.behind:
        return SyncState.BEHIND
    return SyncState.CLEAN


class SyncEngine:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        git: Optional[GitCLI] = None,
        log: Optional[SyncLogRepo] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.root = Path(self.settings.FRAME_ART_PATH)
        self.git = git or GitCLI(self.root, self.settings.GIT_PROCESS_TIMEOUT_SECONDS)
        self.log = log or SyncLogRepo(self.settings.SYNC_LOG_PATH, self.settings.SYNC_LOG_LIMIT)
        self.state = SyncState.UNVERIFIED
        self.last_verification: Optional[Verification] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="git-worker")

    # --------------- worker plumbing ---------------
    def close(self) -> None:
        # Let an in-flight pull/push finish; never hard-cancel it.
        self._executor.shutdown(wait=True)

    def _submit(self, fn: Callable[..., Any], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> Any:
        wait = self.settings.GIT_TIMEOUT_SECONDS if timeout is None else timeout
        future = self._executor.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=wait)
        except FutureTimeoutError as e:
            logger.warning(f"⚠ {fn.__name__} still running after {wait}s; it will finish in the background")
            raise SyncTimeoutError(f"git operation did not complete within {wait}s; try again later") from e

    def _record(self, operation: str, success: bool, state: SyncState, message: str,
                files: Iterable[str] = (), log: bool = True, **extra: Any) -> SyncOutcome:
        self.state = state
        outcome = SyncOutcome(operation=operation, success=success, state=state, message=message,
                              files=list(files), **extra)
        if log:
            self.log.append(SyncLogEntry(operation=operation, status=state.value, message=message,
                                         files=outcome.files))
        level = logging.INFO if success else logging.WARNING
        logger.log(level, f"[{operation}] {state.value}: {message}")
        return outcome

    # --------------- public API (serialised on the worker) ---------------
    def verify(self, timeout: Optional[float] = None) -> Verification:
        return self._submit(self._verify, timeout=timeout)

    def status(self, fetch: bool = False, timeout: Optional[float] = None) -> RepoStatus:
        return self._submit(self._status, fetch, timeout=timeout)

    def guarded_pull(self, timeout: Optional[float] = None) -> SyncOutcome:
        return self._submit(self._guarded_pull, timeout=timeout)

    def commit_and_push(self, files: Optional[List[str]] = None, message: Optional[str] = None,
                        timeout: Optional[float] = None) -> SyncOutcome:
        return self._submit(self._commit_and_push, files, message, timeout=timeout)

    def semantic_status(self, fetch: bool = True, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._submit(self._semantic_status, fetch, timeout=timeout)

    def check_conflicts(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._submit(self._check_conflicts, timeout=timeout)

    def abort_merge(self, timeout: Optional[float] = None) -> SyncOutcome:
        return self._submit(self._abort_merge, timeout=timeout)

    def move(self, src: str, dst: str) -> bool:
        """Rename a repo-relative path; returns True if git recorded it as a move.

        Waits for the worker without a deadline: a caller that gets an error back
        knows the move did not run later behind its back. The git process itself is
        still bounded by ``GIT_PROCESS_TIMEOUT_SECONDS``.
        """
        return self._executor.submit(self._move, src, dst).result()

    # --------------- verification ---------------
    def _verify(self) -> Verification:
        checks: Dict[str, object] = {}
        errors: List[str] = []

        try:
            inside = self.git.run(["rev-parse", "--is-inside-work-tree"], check=False)
            checks["is_git_repo"] = inside.ok and inside.stdout.strip() == "true"
        except GitCommandError as e:
            checks["is_git_repo"] = False
            errors.append(e.message)
        if not checks["is_git_repo"]:
            errors.append("Path is not a Git repository")
            return self._finish_verify(Verification(is_valid=False, checks=checks, errors=errors))

        remote = self.git.run(["remote", "get-url", self.settings.REMOTE_NAME], check=False)
        remote_url = remote.stdout.strip() if remote.ok else None
        checks["remote_url"] = remote_url
        checks["is_correct_remote"] = bool(remote_url) and self.settings.EXPECTED_REMOTE in remote_url
        if not remote_url:
            errors.append(f"No {self.settings.REMOTE_NAME} remote configured")
        elif not checks["is_correct_remote"]:
            errors.append(f"Expected {self.settings.EXPECTED_REMOTE}, found {remote_url}")

        if self.settings.REQUIRE_LFS:
            lfs = self.git.run(["lfs", "version"], check=False)
            attributes = self.root / ".gitattributes"
            has_attrs = attributes.exists() and "filter=lfs" in attributes.read_text(encoding="utf-8", errors="replace")
            checks["is_lfs_configured"] = lfs.ok and has_attrs
            if not lfs.ok:
                errors.append("Git LFS not installed. Run: git lfs install")
            elif not has_attrs:
                errors.append(".gitattributes has no LFS filters - LFS may not be configured")
        else:
            checks["is_lfs_configured"] = None

        branch = self.git.run(["rev-parse", "--abbrev-ref", "HEAD"], check=False)
        current = branch.stdout.strip() if branch.ok else None
        checks["current_branch"] = current
        checks["is_required_branch"] = current == self.settings.REQUIRED_BRANCH
        if current is None:
            errors.append("Could not determine current branch")
        elif current != self.settings.REQUIRED_BRANCH:
            errors.append(f"Not on {self.settings.REQUIRED_BRANCH} branch (currently on: {current})")

        return self._finish_verify(Verification(is_valid=not errors, checks=checks, errors=errors))

    def _finish_verify(self, verification: Verification) -> Verification:
        self.last_verification = verification
        if verification.is_valid:
            if self.state == SyncState.UNVERIFIED:
                self.state = SyncState.VERIFIED
        else:
            self.state = SyncState.UNVERIFIED
            logger.warning(f"⚠ Git configuration invalid: {'; '.join(verification.errors)}")
        return verification

    def _require_valid(self) -> Verification:
        verification = self._verify()
        if not verification.is_valid:
            raise ConfigurationError("Git configuration invalid", errors=verification.errors)
        return verification

    # --------------- status ---------------
    def _snapshot(self) -> StatusSnapshot:
        out = self.git.run(["status", "--porcelain=v1", "--branch", "-z", "--untracked-files=all"])
        return parse_status_z(out.stdout)

    def _fetch(self) -> bool:
        try:
            self.git.run(["fetch", self.settings.REMOTE_NAME, self.settings.REQUIRED_BRANCH])
            return True
        except GitCommandError as e:
            logger.warning(f"⚠ Could not fetch from remote (network may be down): {e.message}")
            return False

    def _status(self, fetch: bool = False) -> RepoStatus:
        if fetch:
            self._fetch()
        snap = self._snapshot()
        state = derive_state(snap)
        self.state = state
        return RepoStatus(
            state=state,
            branch=snap.branch,
            tracking=snap.tracking,
            ahead=snap.ahead,
            behind=snap.behind,
            changed_files=snap.paths,
            conflicted_files=snap.conflicted,
            local_changes=classify(snap.entries),
        )

    # --------------- guarded pull ---------------
    def _guarded_pull(self) -> SyncOutcome:
        op = "auto-pull"
        previous = self.state
        try:
            self._require_valid()
        except ConfigurationError as e:
            return self._record(op, False, SyncState.UNVERIFIED, f"Git configuration invalid: {e.message}")

        snap = self._snapshot()
        state = derive_state(snap)
        if state == SyncState.CONFLICT:
            return self._record(op, False, state, "Unresolved conflicts present; pull refused",
                                files=snap.conflicted, skipped=True)
        if state == SyncState.DIRTY:
            # Checked before fetching: no network round trip when we would refuse anyway.
            return self._record(op, True, state, "Uncommitted local changes detected; pull skipped",
                                files=snap.paths, skipped=True)

        if not self._fetch():
            return self._record(op, False, state, "Could not fetch from remote")

        snap = self._snapshot()
        state = derive_state(snap)
        if state == SyncState.CLEAN:
            # Logged once on the way into CLEAN; repeated page-load checks stay quiet.
            return self._record(op, True, state, "Already up to date", log=previous != SyncState.CLEAN)
        if state in (SyncState.AHEAD, SyncState.DIVERGED, SyncState.DIRTY):
            return self._record(
                op, True, state,
                f"Local commits not yet pushed (ahead {snap.ahead}, behind {snap.behind}); pull skipped",
                skipped=True,
            )

        behind = snap.behind
        self.state = SyncState.SYNCING
        try:
            self.git.run(["pull", "--ff-only", self.settings.REMOTE_NAME, self.settings.REQUIRED_BRANCH])
            if self.settings.REQUIRE_LFS:
                self.git.run(["lfs", "pull"])
        except GitCommandError as e:
            after = self._snapshot()
            conflicted = bool(after.conflicted) or any(m in e.stderr for m in _CONFLICT_MARKERS)
            result_state = SyncState.CONFLICT if conflicted else derive_state(after)
            return self._record(op, False, result_state, f"Pull failed: {e.message}",
                                files=after.conflicted)

        after = self._snapshot()
        noun = "commit" if behind == 1 else "commits"
        return self._record(op, True, derive_state(after), f"Pulled {behind} {noun} from remote",
                            pulled_commits=behind)

    # --------------- commit + push ---------------
    def _commit_and_push(self, files: Optional[List[str]] = None, message: Optional[str] = None) -> SyncOutcome:
        op = "push"
        self._require_valid()

        snap = self._snapshot()
        state = derive_state(snap)
        if state == SyncState.CONFLICT:
            self._record(op, False, state, "Unresolved conflicts present; push refused", files=snap.conflicted)
            raise ConflictError("Unresolved conflicts present; resolve them before syncing")
        if not snap.entries and not snap.ahead:
            return self._record(op, True, state, "No changes to sync", log=False)

        staged: List[str] = []
        committed = False
        if snap.entries:
            candidates = managed_paths(snap.entries)
            if files is not None:
                wanted = set(files)
                if METADATA_FILE in wanted and METADATA_FILE in candidates:
                    # metadata.json already describes every pending library change; the
                    # remote must never get records whose files stayed behind.
                    staged = candidates
                else:
                    staged = [p for p in candidates if p in wanted]
            else:
                staged = candidates
            if staged:
                self.state = SyncState.SYNCING
                staged_set = set(staged)
                entries = [e for e in snap.entries
                           if e.path in staged_set or (e.orig_path and e.orig_path in staged_set)]
                # Index-only entries (e.g. a `git mv`) are already staged; their old path
                # no longer exists anywhere, so naming it to `git add` would fail.
                to_add = [e.path for e in entries if len(e.code) == 2 and e.code[1] != " "]
                if to_add:
                    self.git.run(["add", "-A", "--", *to_add])
                commit_paths: List[str] = []
                for e in entries:
                    for p in (e.orig_path, e.path):
                        if p and p not in commit_paths:
                            commit_paths.append(p)
                msg = message or self._generate_message(entries, staged)
                # --only: anything else sitting in the index (an unsynced `git mv`) stays staged.
                self.git.run(["commit", "-m", msg, "--only", "--", *commit_paths])
                committed = True

        if not committed and not snap.ahead:
            return self._record(op, True, state, "No managed changes to sync", log=False)

        self.state = SyncState.SYNCING
        try:
            self.git.run(["push", self.settings.REMOTE_NAME, self.settings.REQUIRED_BRANCH])
        except GitCommandError as e:
            if any(m in e.stderr for m in _REJECTION_MARKERS):
                self._record(op, False, SyncState.CONFLICT,
                             f"Push rejected, remote has diverged: {e.stderr.strip()}", files=staged,
                             committed=committed)
                raise ConflictError("Push rejected because the remote has new commits; resolve manually") from e
            self._record(op, False, derive_state(self._snapshot()), f"Push failed: {e.message}",
                         files=staged, committed=committed)
            raise

        after = self._snapshot()
        return self._record(op, True, derive_state(after),
                            "Committed and pushed changes" if committed else "Pushed local commits",
                            files=staged, committed=committed, pushed=True)

    def _generate_message(self, entries: List[FileStatus], staged: List[str]) -> str:
        summary = classify(entries)
        lines: List[str] = []
        if METADATA_FILE in staged:
            lines = diff_metadata(self._committed_metadata(), self._working_metadata())
        return build_commit_message(summary, lines)

    def _committed_metadata(self) -> Optional[dict]:
        shown = self.git.run(["show", f"HEAD:{METADATA_FILE}"], check=False)
        if not shown.ok:
            return None
        try:
            return json.loads(shown.stdout)
        except json.JSONDecodeError:
            return None

    def _working_metadata(self) -> dict:
        try:
            data = read_json(self.root / METADATA_FILE)
        except CorruptStoreError:
            return {}
        return data if isinstance(data, dict) else {}

    # --------------- sync badge ---------------
    def _range_changes(self, revisions: str) -> ChangeSummary:
        try:
            out = self.git.run(["diff", "--name-status", "-M", "-z", revisions])
        except GitCommandError as e:
            logger.error(f"❌ Could not read changes for {revisions}: {e.message}")
            return ChangeSummary()
        return classify(parse_name_status_z(out.stdout))

    def _semantic_status(self, fetch: bool = True) -> Dict[str, Any]:
        if fetch:
            self._fetch()
        snap = self._snapshot()
        self.state = derive_state(snap)
        local = classify(snap.entries)
        unpushed = ChangeSummary()
        unpulled = ChangeSummary()
        if snap.tracking and snap.ahead:
            unpushed = self._range_changes(f"{snap.tracking}...HEAD")
        if snap.tracking and snap.behind:
            unpulled = self._range_changes(f"HEAD...{snap.tracking}")
        upload = local + unpushed
        return {
            "state": self.state.value,
            "upload": upload.to_dict(),
            "download": unpulled.to_dict(),
            "has_changes": upload.count > 0 or unpulled.count > 0,
            "branch": snap.branch,
            "is_required_branch": snap.branch == self.settings.REQUIRED_BRANCH,
            "ahead": snap.ahead,
            "behind": snap.behind,
            "last_commit": self._last_commit(),
            "has_conflicts": bool(snap.conflicted),
            "conflicted_files": snap.conflicted,
        }

    def _last_commit(self) -> Optional[Dict[str, str]]:
        out = self.git.run(["log", "-1", "--format=%H%x00%an%x00%aI%x00%B"], check=False)
        if not out.ok or not out.stdout.strip():
            return None
        commit_hash, author, date, body = (out.stdout.split("\0") + ["", "", "", ""])[:4]
        return {"hash": commit_hash[:7], "author": author, "date": date, "message": body.strip()}

    # --------------- conflicts / manual recovery ---------------
    def _operation_in_progress(self) -> Optional[str]:
        git_dir = self.git.run(["rev-parse", "--git-dir"], check=False)
        if not git_dir.ok:
            return None
        path = Path(git_dir.stdout.strip())
        if not path.is_absolute():
            path = self.root / path
        if (path / "rebase-merge").exists() or (path / "rebase-apply").exists():
            return "rebase"
        if (path / "MERGE_HEAD").exists():
            return "merge"
        return None

    def _check_conflicts(self) -> Dict[str, Any]:
        snap = self._snapshot()
        in_progress = self._operation_in_progress()
        return {
            "has_conflicts": bool(snap.conflicted) or in_progress is not None,
            "conflict_type": in_progress,
            "conflicted_files": snap.conflicted,
        }

    def _abort_merge(self) -> SyncOutcome:
        attempts = (
            ("abort-merge", ["merge", "--abort"], "Successfully aborted merge"),
            ("abort-rebase", ["rebase", "--abort"], "Successfully aborted rebase"),
        )
        for op, args, message in attempts:
            if self.git.run(args, check=False).ok:
                return self._record(op, True, derive_state(self._snapshot()), message)
        raise NotFoundError("No merge or rebase in progress")

    # --------------- rename-as-move ---------------
    def _is_tracked(self, path: str) -> bool:
        try:
            return self.git.run(["ls-files", "--error-unmatch", "--", path], check=False).ok
        except GitCommandError:
            return False

    def _move(self, src: str, dst: str) -> bool:
        target = self.root / dst
        target.parent.mkdir(parents=True, exist_ok=True)
        if self._is_tracked(src):
            self.git.run(["mv", "--", src, dst])
            return True
        # Untracked (e.g. not yet committed upload) or no repository: plain filesystem rename.
        (self.root / src).rename(target)
        return False
