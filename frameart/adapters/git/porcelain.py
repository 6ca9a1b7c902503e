"""
Parsers for machine-readable git output:
  - `git status --porcelain=v1 --branch -z`
  - `git diff --name-status -M -z`
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

UNMERGED_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


@dataclass(frozen=True)
class FileStatus:
    """One entry of status/diff output. `code` is the git status letter(s)."""
    code: str
    path: str
    orig_path: Optional[str] = None

    @property
    def effective(self) -> str:
        """Single status letter: index column wins over worktree column."""
        if len(self.code) == 2:
            x, y = self.code[0], self.code[1]
            if self.code == "??":
                return "?"
            return x if x not in (" ", ".") else y
        return self.code[:1]

    @property
    def unmerged(self) -> bool:
        return self.code in UNMERGED_CODES


@dataclass
class StatusSnapshot:
    branch: Optional[str] = None
    tracking: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    gone: bool = False
    entries: List[FileStatus] = field(default_factory=list)

    @property
    def conflicted(self) -> List[str]:
        return [e.path for e in self.entries if e.unmerged]

    @property
    def paths(self) -> List[str]:
        out: List[str] = []
        for e in self.entries:
            if e.orig_path:
                out.append(e.orig_path)
            out.append(e.path)
        return out


def parse_branch_header(line: str, snapshot: StatusSnapshot) -> None:
    """
    Handles:  ## main | ## main...origin/main [ahead 1, behind 2] |
              ## No commits yet on main | ## HEAD (no branch)
    """
    header = line[3:]
    if header.startswith("HEAD (no branch)"):
        snapshot.branch = "HEAD"
        return
    for prefix in ("No commits yet on ", "Initial commit on "):
        if header.startswith(prefix):
            header = header[len(prefix):]
    counts = ""
    if header.endswith("]") and " [" in header:
        header, counts = header[:-1].split(" [", 1)
    if "..." in header:
        snapshot.branch, snapshot.tracking = header.split("...", 1)
    else:
        snapshot.branch = header.strip()
    for part in counts.split(","):
        part = part.strip()
        if part.startswith("ahead "):
            snapshot.ahead = int(part.split()[1])
        elif part.startswith("behind "):
            snapshot.behind = int(part.split()[1])
        elif part == "gone":
            snapshot.gone = True


def parse_status_z(output: str) -> StatusSnapshot:
    snapshot = StatusSnapshot()
    tokens = output.split("\0")
    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if not token:
            continue
        if token.startswith("## "):
            parse_branch_header(token, snapshot)
            continue
        code, path = token[:2], token[3:]
        orig = None
        if "R" in code or "C" in code:
            # -z puts the source path in the following token
            orig = tokens[i] if i < len(tokens) else None
            i += 1
        snapshot.entries.append(FileStatus(code=code, path=path, orig_path=orig))
    return snapshot


def parse_name_status_z(output: str) -> List[FileStatus]:
    entries: List[FileStatus] = []
    tokens = output.split("\0")
    i = 0
    while i < len(tokens):
        code = tokens[i].strip()
        i += 1
        if not code:
            continue
        if code[0] in ("R", "C"):
            old, new = tokens[i], tokens[i + 1]
            i += 2
            entries.append(FileStatus(code=code[0], path=new, orig_path=old))
        else:
            path = tokens[i]
            i += 1
            entries.append(FileStatus(code=code[0], path=path))
    return entries
