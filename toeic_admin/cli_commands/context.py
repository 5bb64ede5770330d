"""
Shared wiring for CLI commands.

Builds the API client and services once per invocation and turns service
errors into a printed message and exit code 1.
"""

import json
import sys
from functools import wraps
from pathlib import Path
from typing import Any, Callable, List, Optional

import click
import pydantic
import structlog
from rich.console import Console
from rich.table import Table

from toeic_admin.core.config import Settings, get_settings, validate_required_settings
from toeic_admin.core.exceptions import (
    BatchOperationError,
    ConfigurationError,
    SheetParsingError,
    ToeicAdminError,
)
from toeic_admin.core.models import BatchResult, Question, QuestionInput
from toeic_admin.data.api_client import ToeicApiClient
from toeic_admin.data.session_store import SessionStore
from toeic_admin.data.sheet_parser import SheetParser
from toeic_admin.services.ai_service import AIExplanationService
from toeic_admin.services.auth_service import AuthService
from toeic_admin.services.dashboard_service import DashboardService
from toeic_admin.services.exam_service import ExamService
from toeic_admin.services.media_service import MediaService
from toeic_admin.services.part_service import PartService
from toeic_admin.services.question_builders import QuestionBuilder
from toeic_admin.services.question_service import QuestionService
from toeic_admin.services.user_service import UserService

logger = structlog.get_logger(__name__)

console = Console()


class AppContext:
    """Everything a command needs, wired from the settings."""

    def __init__(self, settings: Settings, transport=None, dry_run: bool = False):
        self.settings = settings
        workers = settings.batch.max_workers

        self.store = SessionStore.from_config(settings.session)
        self.api = ToeicApiClient(
            settings.api,
            token_provider=self.store.token,
            transport=transport,
            dry_run=dry_run,
        )

        self.auth = AuthService(self.api, self.store)
        self.media = MediaService(self.api, self.store)
        self.exams = ExamService(self.api)
        self.parts = PartService(self.api, max_workers=workers)
        self.questions = QuestionService(self.api, self.media, max_workers=workers)
        self.users = UserService(self.api)
        self.ai = AIExplanationService(self.api)
        self.builder = QuestionBuilder(
            self.questions, self.parts, self.media, ai=self.ai, max_workers=workers
        )
        self.dashboard = DashboardService(self.exams, self.users, self.parts, max_workers=workers)

    def close(self) -> None:
        self.api.close()


def get_app(ctx: click.Context, require_session: bool = True) -> AppContext:
    """
    Return the invocation's ``AppContext``, creating it on first use.

    With ``require_session`` the stored login must exist and not be idle.
    """
    root = ctx.find_root()
    root.ensure_object(dict)
    app = root.obj.get("app")
    if app is None:
        missing = validate_required_settings()
        if missing:
            raise ConfigurationError(
                "Invalid configuration: " + ", ".join(missing), details={"missing": missing}
            )
        settings = get_settings()
        dry_run = bool(root.obj.get("dry_run")) or settings.dry_run
        app = AppContext(settings, transport=root.obj.get("transport"), dry_run=dry_run)
        root.obj["app"] = app
        root.call_on_close(app.close)
    if require_session:
        app.auth.require_session()
    return app


def handle_errors(func: Callable) -> Callable:
    """Print service errors the way the operator should see them and exit 1."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BatchOperationError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            if e.result is not None:
                print_batch_failures(e.result)
            sys.exit(1)
        except ToeicAdminError as e:
            logger.debug("Command failed", error=e.message, error_type=type(e).__name__)
            console.print(f"[red]Error:[/red] {e.message}")
            sys.exit(1)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            console.print(f"[red]Invalid input:[/red] {field} {first.get('msg', '')}".strip())
            sys.exit(1)

    return wrapper


def print_batch_failures(result: BatchResult) -> None:
    for item in result.results:
        if not item.success:
            console.print(f"  [red]✗[/red] {_describe(item.item)}: {item.error}")


def print_batch_summary(result: BatchResult) -> None:
    colour = "green" if result.ok else "yellow"
    console.print(f"[{colour}]{result.succeeded}/{result.total} succeeded[/{colour}]")
    print_batch_failures(result)


def _describe(item: Any) -> str:
    if isinstance(item, Question):
        return f"Question {item.question_number}"
    if isinstance(item, tuple) and item and isinstance(item[0], Question):
        return f"Question {item[0].question_number}"
    if hasattr(item, "question_number"):
        return f"Question {item.question_number}"
    return str(item)


def truncate(text: Optional[str], width: int = 60) -> str:
    if not text:
        return ""
    text = " ".join(str(text).split())
    return text if len(text) <= width else text[: width - 1] + "…"


def load_json(path: Path) -> Any:
    """Read a JSON draft file."""
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise SheetParsingError(f"Could not read {path}: {e}", details={"path": str(path)})


def resolve_relative(base: Path, value: Optional[str]) -> Optional[str]:
    """Resolve a media path in a draft file relative to that file."""
    if not value:
        return value
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = Path(base).parent / candidate
    return str(candidate)


def load_questions(path: Path) -> List[QuestionInput]:
    """Questions from a JSON list or a spreadsheet."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        raw = load_json(path)
        if not isinstance(raw, list):
            raise SheetParsingError(f"{path.name} must contain a list of questions")
        rows = raw
    else:
        rows = [q.model_dump(exclude_none=True) for q in SheetParser().parse_file(path)]
    try:
        return [QuestionInput.model_validate(row) for row in rows]
    except ValueError as e:
        raise SheetParsingError(
            f"Invalid question in {path.name}: {e}", details={"path": str(path)}
        )


def questions_table(questions: List[Question], title: Optional[str] = None) -> Table:
    table = Table(title=title, show_header=True, header_style="bold blue")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Question")
    table.add_column("Answer", justify="center")
    table.add_column("Explanation", justify="center")
    table.add_column("ID", style="dim")
    for q in questions:
        table.add_row(
            str(q.question_number),
            truncate(q.question_text),
            q.correct_answer or "-",
            "✓" if q.explanation else "",
            q.id or "",
        )
    return table
