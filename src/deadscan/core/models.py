"""Domain models for dead code inspections."""

from __future__ import annotations

import copy
import re
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from deadscan.core.errors import MalformedRepositoryUrlError, UnsupportedLanguageError


class InspectionState(str, Enum):
    """Lifecycle of an inspection, in pipeline order."""

    ADDED = "ADDED"
    DOWNLOADING = "DOWNLOADING"
    IN_QUEUE = "IN_QUEUE"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        """True for COMPLETED and FAILED."""
        return self in TERMINAL_STATES

    @property
    def is_locked(self) -> bool:
        """True while the inspection is still running."""
        return self not in TERMINAL_STATES

    @property
    def order(self) -> int:
        """Position along the pipeline (both terminals share the last slot)."""
        return _STATE_ORDER[self]


TERMINAL_STATES = frozenset({InspectionState.COMPLETED, InspectionState.FAILED})

LOCKED_STATES = frozenset(s for s in InspectionState if s not in TERMINAL_STATES)

_STATE_ORDER: Dict[InspectionState, int] = {
    InspectionState.ADDED: 0,
    InspectionState.DOWNLOADING: 1,
    InspectionState.IN_QUEUE: 2,
    InspectionState.PROCESSING: 3,
    InspectionState.COMPLETED: 4,
    InspectionState.FAILED: 4,
}

STATE_DESCRIPTIONS: Dict[InspectionState, str] = {
    InspectionState.ADDED: "Inspection created",
    InspectionState.DOWNLOADING: "Downloading repository",
    InspectionState.IN_QUEUE: "Waiting in analysis queue",
    InspectionState.PROCESSING: "Analyzing source code",
    InspectionState.COMPLETED: "Inspection completed",
    InspectionState.FAILED: "Inspection failed",
}


class SymbolKind(str, Enum):
    """Symbol categories reported by the unused code script that we keep."""

    PARAMETER = "Parameter"
    PRIVATE_METHOD = "Private Method"
    PRIVATE_STATIC_GENERIC_METHOD = "Private Static Generic Method"
    PRIVATE_STATIC_METHOD = "Private Static Method"
    VARIABLE = "Variable"
    PRIVATE_VARIABLE = "Private Variable"


class SupportedLanguage(str, Enum):
    """Language names accepted by ``und create -languages``."""

    ADA = "Ada"
    CPP = "C++"
    CSHARP = "C#"
    FORTRAN = "Fortran"
    JAVA = "Java"
    JOVIAL = "Jovial"
    PASCAL = "Pascal"
    PYTHON = "Python"
    VHDL = "VHDL"
    WEB = "Web"

    @classmethod
    def parse(cls, name: str) -> "SupportedLanguage":
        """Look up a language by name or enum key, ignoring case.

        Raises:
            UnsupportedLanguageError: If the name is unknown.
        """
        wanted = (name or "").strip().lower()
        for language in cls:
            if wanted in (language.value.lower(), language.name.lower()):
                return language
        raise UnsupportedLanguageError(name)


# Patterns with a ".git" suffix must be tried first so the suffix does not end
# up in the repository name.
_URL_PATTERNS = [
    re.compile(r"https?://[^/]+@([^/]+)/([^/]+)/([^/]+)\.git"),
    re.compile(r"https?://([^/]+)/([^/]+)/([^/]+)\.git"),
    re.compile(r"https?://[^/]+@([^/]+)/([^/]+)/([^/]+)/?"),
    re.compile(r"https?://([^/]+)/([^/]+)/([^/]+)/?"),
]


@dataclass(frozen=True)
class GitRepo:
    """Remote repository locator."""

    url: str
    host: str
    owner: str
    name: str

    @classmethod
    def from_url(cls, url: str) -> "GitRepo":
        """Parse a remote URL into a locator.

        Raises:
            MalformedRepositoryUrlError: If the URL matches no known shape.
        """
        trimmed = (url or "").strip()
        for pattern in _URL_PATTERNS:
            match = pattern.fullmatch(trimmed)
            if match:
                return cls(
                    url=trimmed,
                    host=match.group(1),
                    owner=match.group(2),
                    name=match.group(3),
                )
        raise MalformedRepositoryUrlError(url)

    @property
    def key(self) -> str:
        """Identity used to detect duplicate inspections of the same repository."""
        return f"{self.host}/{self.owner}/{self.name}".lower()

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "host": self.host, "owner": self.owner, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GitRepo":
        return cls(
            url=data["url"],
            host=data["host"],
            owner=data["owner"],
            name=data["name"],
        )


@dataclass(frozen=True)
class DeadCodeOccurrence:
    """One unused symbol reported by the analysis tool."""

    kind: str
    name: str
    file: str
    line: Optional[int] = None
    column: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "file": self.file,
            "line": self.line,
            "column": self.column,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeadCodeOccurrence":
        return cls(
            kind=data["kind"],
            name=data["name"],
            file=data["file"],
            line=data.get("line"),
            column=data.get("column"),
        )


def _now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class Inspection:
    """A requested dead code analysis of one repository branch.

    State fields are changed by ``InspectionStateMachine`` and by the store's
    atomic updates only. Callers receive copies.
    """

    id: str
    git_repo: GitRepo
    branch: str
    language: str
    state: InspectionState = InspectionState.ADDED
    state_description: str = STATE_DESCRIPTIONS[InspectionState.ADDED]
    created_at: int = field(default_factory=_now_millis)
    findings: List[DeadCodeOccurrence] = field(default_factory=list)
    failure_message: Optional[str] = None

    @classmethod
    def create(cls, git_repo: GitRepo, branch: str, language: str) -> "Inspection":
        """Build a new inspection in state ADDED with a fresh id."""
        return cls(
            id=str(uuid.uuid4()),
            git_repo=git_repo,
            branch=branch,
            language=language,
        )

    @property
    def is_locked(self) -> bool:
        return self.state.is_locked

    def reset(self) -> None:
        """Return to ADDED for a new run, dropping previous results."""
        self.state = InspectionState.ADDED
        self.state_description = STATE_DESCRIPTIONS[InspectionState.ADDED]
        self.created_at = _now_millis()
        self.findings = []
        self.failure_message = None

    def copy(self) -> "Inspection":
        return copy.deepcopy(self)

    def filtered(self, text: str) -> "Inspection":
        """Copy keeping only findings whose name or file contains ``text``."""
        needle = text.lower()
        result = self.copy()
        result.findings = [
            f for f in self.findings
            if needle in f.name.lower() or needle in f.file.lower()
        ]
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "git_repo": self.git_repo.to_dict(),
            "branch": self.branch,
            "language": self.language,
            "state": self.state.value,
            "state_description": self.state_description,
            "created_at": self.created_at,
            "findings": [f.to_dict() for f in self.findings],
            "failure_message": self.failure_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Inspection":
        return cls(
            id=data["id"],
            git_repo=GitRepo.from_dict(data["git_repo"]),
            branch=data["branch"],
            language=data["language"],
            state=InspectionState(data["state"]),
            state_description=data.get("state_description", ""),
            created_at=data.get("created_at", 0),
            findings=[DeadCodeOccurrence.from_dict(f) for f in data.get("findings", [])],
            failure_message=data.get("failure_message"),
        )
