"""
Logging utilities for modelgit

Enhanced with:
- Rich console output (status lines, panels, history tables)
- Optional file logging
- Structured operation events (JSONL)
"""

import logging
import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, Iterable, TYPE_CHECKING
from rich.console import Console
from rich.panel import Panel
from rich.logging import RichHandler
from rich.theme import Theme
from rich.table import Table

if TYPE_CHECKING:
    from ...versioning.models import Commit, Branch

# Custom theme for the console
custom_theme = Theme({
    "info": "dim cyan",
    "warning": "magenta",
    "error": "bold red",
    "success": "bold green",
    # Change type colors
    "added": "green",
    "modified": "yellow",
    "deleted": "red",
})

console = Console(theme=custom_theme)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rich_console: bool = True,
) -> logging.Logger:
    """
    패키지 로거 설정

    Args:
        level: 로그 레벨
        log_file: 파일 로그 경로 (None이면 파일 로그 없음)
        rich_console: RichHandler로 콘솔 출력

    Returns:
        "modelgit" 로거
    """
    root = logging.getLogger("modelgit")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    root.handlers = []

    if rich_console:
        root.addHandler(RichHandler(console=console, show_path=False, markup=False))

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    return root


class OperationLogger:
    """
    Structured event logger for repository operations.

    Every event is mirrored to the standard logger; when an event file is
    configured the full event is also appended as one JSON line.
    """

    def __init__(self, event_file: Optional[str] = None, dataset_id: Optional[str] = None):
        self.event_file: Optional[Path] = Path(event_file) if event_file else None
        self.dataset_id = dataset_id
        self.logger = logging.getLogger("modelgit.events")

        if self.event_file:
            self.event_file.parent.mkdir(parents=True, exist_ok=True)

    def log_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        level: str = "info"
    ) -> Dict[str, Any]:
        """
        Log a structured event for traceability.

        Args:
            event_type: Type of event (e.g., "commit_created", "merge_completed")
            data: Event data
            level: Log level

        Returns:
            The event record
        """
        event = {
            "timestamp": datetime.now().isoformat(),
            "dataset_id": self.dataset_id,
            "event_type": event_type,
            "level": level,
            "data": data,
        }

        # Write to event file (JSONL format)
        if self.event_file:
            with open(self.event_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")

        msg = f"[{event_type}] {json.dumps(data, ensure_ascii=False, default=str)[:200]}"
        getattr(self.logger, level)(msg)

        return event

    def read_events(self) -> list:
        """Read back all events from the event file."""
        if not self.event_file or not self.event_file.exists():
            return []
        with open(self.event_file, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


def print_panel(content: str, title: str, style: str = "info"):
    """Prints a rich panel to the console."""
    console.print(Panel(content, title=title, border_style=style, expand=False))


def print_status(message: str, style: str = "info"):
    """Prints a status message."""
    console.print(f"[{style}]{message}[/{style}]")


def build_history_table(commits: Iterable["Commit"], show_changes: bool = False) -> Table:
    """Builds the commit history table (oldest first, as stored)."""
    table = Table(title="Model History")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Branch", style="magenta")
    table.add_column("Message", style="green")
    table.add_column("Commit", style="dim")
    table.add_column("Author", style="yellow")
    table.add_column("Parent", style="dim")
    table.add_column("Changes", style="blue", justify="right")

    for commit in commits:
        table.add_row(
            commit.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            commit.branch_name,
            commit.message,
            commit.commit_id[:12],
            commit.author,
            commit.parent_commit[:12] if commit.parent_commit else "",
            str(len(commit.changes)),
        )
        if show_changes:
            for change in commit.changes:
                style = change.change_type.value.lower()
                table.add_row(
                    "", "", f"  [{style}]{change.change_type.value}[/{style}]: {change.id}",
                    "", "", "", "",
                )

    return table


def print_history_table(commits: Iterable["Commit"], show_changes: bool = False):
    """Prints the commit history table."""
    console.print(build_history_table(commits, show_changes=show_changes))


def build_branch_table(branches: Iterable["Branch"], current: Optional[str] = None) -> Table:
    """Builds the branch catalog table."""
    table = Table(title="Branches")
    table.add_column("", style="success")
    table.add_column("Name", style="magenta")
    table.add_column("Commits", style="blue", justify="right")
    table.add_column("Latest", style="dim")

    for branch in branches:
        table.add_row(
            "*" if branch.name == current else "",
            branch.name,
            str(len(branch.commits)),
            branch.commits[-1][:12] if branch.commits else "",
        )

    return table


def print_branch_table(branches: Iterable["Branch"], current: Optional[str] = None):
    """Prints the branch catalog table."""
    console.print(build_branch_table(branches, current=current))
