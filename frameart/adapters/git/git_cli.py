"""
Thin subprocess wrapper around the git command line, rooted at one working tree.
"""

from __future__ import annotations
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from frameart.core.errors import GitCommandError, SyncTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class GitResult:
    args: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitCLI:
    def __init__(self, root: Path, process_timeout: Optional[float] = 600.0) -> None:
        self.root = Path(root)
        self.process_timeout = process_timeout

    def run(self, args: Sequence[str], check: bool = True) -> GitResult:
        cmd = ["git", "-C", str(self.root), *args]
        logger.debug(f"git {' '.join(args)}")
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.process_timeout,
                # Never block on a credential prompt.
                env=_non_interactive_env(),
            )
        except FileNotFoundError as e:
            raise GitCommandError(list(args), 127, stderr=f"git executable not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise SyncTimeoutError(f"git {' '.join(args)} exceeded {self.process_timeout}s") from e
        result = GitResult(list(args), proc.returncode, proc.stdout, proc.stderr)
        if check and not result.ok:
            logger.error(f"❌ git {' '.join(args)} failed: {proc.stderr.strip()}")
            raise GitCommandError(list(args), proc.returncode, proc.stderr, proc.stdout)
        return result


def _non_interactive_env() -> dict:
    env = dict(os.environ)
    env.setdefault("GIT_TERMINAL_PROMPT", "0")
    return env
