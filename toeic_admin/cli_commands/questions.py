"""Question commands: listing, editing, imports and the per-part entry flows."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from toeic_admin.cli_commands.context import (
    console,
    get_app,
    handle_errors,
    load_json,
    load_questions,
    print_batch_summary,
    questions_table,
    resolve_relative,
    truncate,
)
from toeic_admin.core.catalog import get_part_spec, part_has_passages, validate_question_number
from toeic_admin.core.exceptions import SheetParsingError, ValidationError
from toeic_admin.core.messages import notify
from toeic_admin.core.models import ANSWER_CHOICES, ImportMode, QuestionInput
from toeic_admin.data.sheet_parser import SheetParser, write_template
from toeic_admin.services.question_builders import (
    Part1Draft,
    Part2Draft,
    Part6Passage,
    Part7Passage,
)
from toeic_admin.utils.passages import extract_image_urls, group_by_passage, passage_row_spans

ANSWER_CHOICE = click.Choice(list(ANSWER_CHOICES), case_sensitive=False)
FILE_PATH = click.Path(exists=True, dir_okay=False, path_type=Path)


def _option_values(a, b, c, d) -> Dict[str, Optional[str]]:
    return {"A": a, "B": b, "C": c, "D": d}


def _load_list(path: Path, model, media_fields: Tuple[str, ...] = ()):
    raw = load_json(path)
    if not isinstance(raw, list):
        raise SheetParsingError(f"{path.name} must contain a list")
    items = []
    for entry in raw:
        for field in media_fields:
            if field in entry:
                value = entry[field]
                if isinstance(value, list):
                    entry[field] = [resolve_relative(path, v) for v in value]
                else:
                    entry[field] = resolve_relative(path, value)
        items.append(model.model_validate(entry))
    return items


@click.group(name="questions")
def questions_group():
    """Manage the questions of a part."""
    pass


@questions_group.command(name="list")
@click.argument("part_id")
@click.pass_context
@handle_errors
def list_questions(ctx, part_id: str):
    """List questions by number; shared passages are shown once per run."""
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    questions = app.questions.list_questions(part_id)

    if not part_has_passages(part.part_number):
        console.print(questions_table(questions, title=f"Part {part.part_number}"))
        return

    table = Table(title=f"Part {part.part_number}", show_header=True, header_style="bold blue")
    table.add_column("Passage")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Question")
    table.add_column("Answer", justify="center")
    table.add_column("ID", style="dim")
    for question, span in zip(questions, passage_row_spans(questions)):
        passage_cell = truncate(question.passage, 40) if span else ""
        table.add_row(
            passage_cell,
            str(question.question_number),
            truncate(question.question_text, 40),
            question.correct_answer or "-",
            question.id or "",
        )
    console.print(table)


@questions_group.command(name="grouped")
@click.argument("part_id")
@click.pass_context
@handle_errors
def grouped(ctx, part_id: str):
    """Show questions grouped under the passage they share."""
    app = get_app(ctx)
    groups = group_by_passage(app.questions.list_questions(part_id))
    if not groups:
        console.print("No questions yet.")
        return
    for index, group in enumerate(groups, 1):
        numbers = group.question_numbers
        console.print(
            f"\n[bold blue]Passage {index}[/bold blue] (questions {numbers[0]}-{numbers[-1]})"
        )
        images = extract_image_urls(group.passage)
        if images:
            console.print(f"  Images: {', '.join(images)}")
        console.print(f"  {truncate(group.passage, 200)}")
        console.print(questions_table(group.questions))


@questions_group.command(name="next-number")
@click.argument("part_id")
@click.pass_context
@handle_errors
def next_number(ctx, part_id: str):
    """Print the number to use for the next question."""
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    click.echo(app.questions.next_question_number(part_id, part.part_number))


@questions_group.command(name="create")
@click.argument("part_id")
@click.option("--number", type=int, help="Question number (defaults to the next free one)")
@click.option("--text", "question_text", help="Question text")
@click.option("--a", "option_a")
@click.option("--b", "option_b")
@click.option("--c", "option_c")
@click.option("--d", "option_d")
@click.option("--answer", type=ANSWER_CHOICE, required=True, help="Correct answer")
@click.option("--explanation")
@click.option("--passage", help="Passage text (Parts 6 and 7)")
@click.option("--image", type=FILE_PATH, help="Image to upload (required for Part 1)")
@click.option("--audio", type=FILE_PATH, help="Audio to upload")
@click.option("--transcript")
@click.pass_context
@handle_errors
def create_question(
    ctx,
    part_id,
    number,
    question_text,
    option_a,
    option_b,
    option_c,
    option_d,
    answer,
    explanation,
    passage,
    image,
    audio,
    transcript,
):
    """Create a single question using the flow of the part it belongs to."""
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    if number is None:
        number = max(
            app.questions.next_question_number(part_id, part.part_number),
            get_part_spec(part.part_number).first_question,
        )
    answer = answer.upper()

    if part.part_number == 1:
        options = _option_values(option_a, option_b, option_c, option_d)
        app.builder.create_part1_question(part, number, image, answer, options)
    elif part.part_number == 2:
        app.builder.create_part2_question(part, number, answer, audio, explanation)
    else:
        validate_question_number(part.part_number, number)
        question = QuestionInput(
            question_number=number,
            question_text=question_text,
            option_a=option_a,
            option_b=option_b,
            option_c=option_c,
            option_d=option_d,
            correct_answer=answer,
            explanation=explanation,
            passage=passage,
            transcript=transcript,
        )
        if image:
            question.image_url = app.media.upload_image(image)
        if audio:
            question.audio_url = app.media.upload_audio(audio)
        app.questions.create_question(part_id, question)

    console.print(f"[green]{notify('questions.created')}[/green] (#{number})")


@questions_group.command(name="update")
@click.argument("question_id")
@click.option("--part-id", required=True, help="Part the question belongs to")
@click.option("--number", type=int)
@click.option("--text", "question_text")
@click.option("--a", "option_a")
@click.option("--b", "option_b")
@click.option("--c", "option_c")
@click.option("--d", "option_d")
@click.option("--answer", type=ANSWER_CHOICE)
@click.option("--explanation")
@click.option("--passage", help="New passage; in Part 6 it is copied to the whole block")
@click.option("--image", type=FILE_PATH, help="Replace the image")
@click.option("--audio", type=FILE_PATH, help="Replace the audio")
@click.option("--transcript")
@click.pass_context
@handle_errors
def update_question(
    ctx,
    question_id,
    part_id,
    number,
    question_text,
    option_a,
    option_b,
    option_c,
    option_d,
    answer,
    explanation,
    passage,
    image,
    audio,
    transcript,
):
    """Edit a question; only the given fields change."""
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    questions = app.questions.list_questions(part_id)
    question = next((q for q in questions if q.id == question_id), None)
    if question is None:
        raise ValidationError(f"Question {question_id} is not in part {part_id}")

    if part.part_number == 1:
        options = {
            letter: given if given is not None else current
            for (letter, current), given in zip(
                question.options.items(), (option_a, option_b, option_c, option_d)
            )
        }
        app.builder.edit_part1_question(
            question,
            number or question.question_number,
            (answer or question.correct_answer or "").upper(),
            image=image,
            options=options,
        )
        console.print(f"[green]{notify('questions.updated')}[/green]")
        return

    fields: Dict[str, Any] = {
        "questionNumber": number,
        "questionText": question_text,
        "optionA": option_a,
        "optionB": option_b,
        "optionC": option_c,
        "optionD": option_d,
        "correctAnswer": answer.upper() if answer else None,
        "explanation": explanation,
        "passage": passage,
        "transcript": transcript,
    }
    values = {k: v for k, v in fields.items() if v is not None}
    if number is not None:
        validate_question_number(part.part_number, number)
    if image:
        values["imageUrl"] = app.media.upload_image(image)
    if audio:
        values["audioUrl"] = app.media.upload_audio(audio)
    if not values:
        raise ValidationError("Nothing to update")

    result = app.questions.update_with_group_sync(part, question, values, questions)
    if result.total > 1:
        console.print(f"[green]{notify('questions.synced', count=result.total)}[/green]")
    else:
        console.print(f"[green]{notify('questions.updated')}[/green]")


@questions_group.command(name="sync-passage")
@click.argument("part_id")
@click.option("--number", type=int, required=True, help="Any question number of the group")
@click.option("--passage", help="New passage text")
@click.option("--passage-file", type=FILE_PATH, help="Read the passage from a file")
@click.option("--image", "images", type=FILE_PATH, multiple=True, help="Part 7: image to add")
@click.option(
    "--keep-images/--drop-images",
    default=True,
    show_default=True,
    help="Part 7: keep the images already in the passage",
)
@click.pass_context
@handle_errors
def sync_passage(ctx, part_id, number, passage, passage_file, images, keep_images):
    """Replace the passage of the group containing a question."""
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    groups = group_by_passage(app.questions.list_questions(part_id))
    group = next((g for g in groups if number in g.question_numbers), None)
    if group is None:
        raise ValidationError(f"No question {number} in this part")

    if passage_file:
        passage = passage_file.read_text(encoding="utf-8")
    kept = extract_image_urls(group.passage) if keep_images else []
    if part.part_number != 7 and passage is None:
        raise ValidationError("Give --passage or --passage-file")

    result = app.questions.update_passage(
        part, group.questions, passage=passage, image_files=images, kept_image_urls=kept
    )
    console.print(f"[green]{notify('questions.passage_updated')}[/green] ({result.total})")


@questions_group.command(name="delete")
@click.argument("question_ids", nargs=-1)
@click.confirmation_option(prompt="Delete the selected questions?")
@click.pass_context
@handle_errors
def delete_questions(ctx, question_ids: Tuple[str, ...]):
    """Delete questions by id."""
    app = get_app(ctx)
    count = app.questions.delete_questions(question_ids)
    console.print(f"[green]{notify('questions.deleted', count=count)}[/green]")


@questions_group.command(name="delete-all")
@click.argument("part_id")
@click.confirmation_option(prompt="Delete ALL questions of this part?")
@click.pass_context
@handle_errors
def delete_all(ctx, part_id: str):
    """Delete every question of a part."""
    app = get_app(ctx)
    app.questions.delete_all(part_id)
    console.print(f"[green]{notify('questions.deleted_all')}[/green]")


@questions_group.command(name="import")
@click.argument("part_id")
@click.argument("sheet", type=FILE_PATH)
@click.option(
    "--mode",
    type=click.Choice([ImportMode.APPEND.value, ImportMode.REPLACE.value]),
    default=ImportMode.APPEND.value,
    show_default=True,
)
@click.pass_context
@handle_errors
def import_questions(ctx, part_id: str, sheet: Path, mode: str):
    """Let the server import a spreadsheet of questions."""
    app = get_app(ctx)
    result = app.questions.import_questions(part_id, sheet, mode)
    console.print(f"[green]{notify('questions.imported', count=result.count)}[/green]")


@questions_group.command(name="template")
@click.argument("part_number", type=click.IntRange(1, 7))
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
)
@handle_errors
def template(part_number: int, output_dir: Path):
    """Write a blank import template (Template_Part_N.xlsx)."""
    path = write_template(part_number, output_dir)
    console.print(notify("questions.template_written", path=path))


@questions_group.command(name="bulk-part1")
@click.argument("part_id")
@click.argument("drafts_file", type=FILE_PATH)
@click.option("--audio", type=FILE_PATH, help="Shared Part 1 audio")
@click.pass_context
@handle_errors
def bulk_part1(ctx, part_id: str, drafts_file: Path, audio: Optional[Path]):
    """
    Create the six Part 1 questions from a JSON list.

    Each entry: questionNumber, image (path relative to the file), correctAnswer,
    optional optionA-D and explanation.
    """
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    drafts = _load_list(drafts_file, Part1Draft, media_fields=("image",))
    result = app.builder.create_part1_bulk(part, drafts, audio)
    console.print(f"[green]{notify('questions.batch_created', count=result.succeeded)}[/green]")


@questions_group.command(name="bulk-part2")
@click.argument("part_id")
@click.argument("drafts_file", type=FILE_PATH)
@click.option("--audio", type=FILE_PATH, help="Shared Part 2 audio (required if the part has none)")
@click.pass_context
@handle_errors
def bulk_part2(ctx, part_id: str, drafts_file: Path, audio: Optional[Path]):
    """Create the 25 Part 2 questions (7-31) from a JSON list."""
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    drafts = _load_list(drafts_file, Part2Draft)
    result = app.builder.create_part2_bulk(part, drafts, audio)
    console.print(f"[green]{notify('questions.batch_created', count=result.succeeded)}[/green]")


@questions_group.command(name="group")
@click.argument("part_id")
@click.argument("questions_file", type=FILE_PATH)
@click.option("--audio", type=FILE_PATH, required=True, help="Conversation or talk audio")
@click.option("--explanation", help="Explanation shared by the group")
@click.option("--transcript", help="Transcript shared by the group")
@click.pass_context
@handle_errors
def listening_group(ctx, part_id, questions_file, audio, explanation, transcript):
    """Create a Part 3/4 group (usually three questions) on one audio clip."""
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    questions = load_questions(questions_file)
    count = app.builder.create_listening_group(part, questions, audio, explanation, transcript)
    console.print(f"[green]{notify('questions.batch_created', count=count)}[/green]")


@questions_group.command(name="part5")
@click.argument("part_id")
@click.argument("sheet", type=FILE_PATH)
@click.option(
    "--mode",
    type=click.Choice([m.value for m in ImportMode]),
    default=ImportMode.NEW.value,
    show_default=True,
)
@click.option("--ai/--no-ai", default=False, help="Generate missing explanations with AI")
@click.option("--lenient", is_flag=True, help="Skip invalid rows instead of stopping")
@click.pass_context
@handle_errors
def part5(ctx, part_id: str, sheet: Path, mode: str, ai: bool, lenient: bool):
    """Save Part 5 questions from a spreadsheet with one batch request."""
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    rows = SheetParser(strict_validation=not lenient).parse_file(sheet)
    console.print(questions_table(rows, title=f"{len(rows)} rows from {sheet.name}"))

    if ai:
        columns = (
            TextColumn("AI explanations"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
        )
        with Progress(*columns, console=console) as progress:
            task = progress.add_task("ai", total=len(rows))
            count = app.builder.save_part5_bulk(
                part,
                rows,
                mode=mode,
                with_ai=True,
                progress=lambda done, total: progress.update(task, completed=done),
            )
    else:
        count = app.builder.save_part5_bulk(part, rows, mode=mode)

    console.print(f"[green]{notify('questions.batch_created', count=count)}[/green]")


@questions_group.command(name="part6")
@click.argument("part_id")
@click.argument("passages_file", type=FILE_PATH)
@click.pass_context
@handle_errors
def part6(ctx, part_id: str, passages_file: Path):
    """
    Create Part 6 passages from a JSON list.

    Each entry: start, end, passage, optional title, and questions.
    """
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    passages = _load_list(passages_file, Part6Passage)
    result = app.builder.create_part6_passages(part, passages)
    if result.ok:
        message = notify("questions.passages_created", count=result.succeeded)
        console.print(f"[green]{message}[/green]")
    else:
        console.print(
            "[yellow]"
            + notify("questions.partial_passages", succeeded=result.succeeded, total=result.total)
            + "[/yellow]"
        )
        print_batch_summary(result)


@questions_group.command(name="part7")
@click.argument("part_id")
@click.argument("group_file", type=FILE_PATH)
@click.pass_context
@handle_errors
def part7(ctx, part_id: str, group_file: Path):
    """
    Create a Part 7 passage and its questions from a JSON object.

    Keys: passageType (image|text|both), title, text, images (paths relative
    to the file) and questions.
    """
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    raw = load_json(group_file)
    if not isinstance(raw, dict):
        raise SheetParsingError(f"{group_file.name} must contain an object")
    raw["images"] = [resolve_relative(group_file, p) for p in raw.get("images") or []]
    group = Part7Passage.model_validate(raw)

    existing = [q.question_number for q in app.questions.list_questions(part_id)]
    count = app.builder.create_part7_group(part, group, existing)
    console.print(f"[green]{notify('questions.batch_created', count=count)}[/green]")
