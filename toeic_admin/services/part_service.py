"""Part (Listening/Reading section) management."""

from typing import Any, Dict, Iterable, List, Optional

import structlog

from toeic_admin.core.catalog import get_part_spec
from toeic_admin.core.exceptions import PartNotEmptyError, ValidationError
from toeic_admin.core.messages import notify
from toeic_admin.core.models import BatchResult, Part, PartInput, PartStatus
from toeic_admin.data.api_client import ToeicApiClient
from toeic_admin.utils.reliability import fan_out

logger = structlog.get_logger(__name__)


def _require_instructions(instructions: Optional[str]) -> str:
    if not instructions or not instructions.strip():
        raise ValidationError(notify("parts.instructions_required"))
    return instructions


class PartService:
    """CRUD over the parts of an exam."""

    def __init__(self, api_client: ToeicApiClient, max_workers: Optional[int] = None):
        self.api = api_client
        self.max_workers = max_workers

    def list_parts(self, test_id: str) -> List[Part]:
        body = self.api.get(f"/tests/{test_id}/parts")
        parts = [Part.model_validate(item) for item in body.get("parts") or []]
        return sorted(parts, key=lambda p: (p.order_index or p.part_number, p.part_number))

    def get_part(self, part_id: str) -> Part:
        body = self.api.get(f"/parts/{part_id}")
        return Part.model_validate(body.get("part") or body.get("data") or {})

    def create_part(
        self, test_id: str, part_number: int, instructions: str, **overrides: Any
    ) -> Optional[Part]:
        """
        Create a part pre-filled from the TOEIC catalog.

        Args:
            test_id: Exam the part belongs to
            part_number: TOEIC part number (1-7)
            instructions: Rich-text instructions shown to students (required)
            **overrides: Any ``PartInput`` field to use instead of the catalog value

        Raises:
            ValidationError: If instructions are blank or the part number is unknown
        """
        _require_instructions(instructions)
        spec = get_part_spec(part_number)

        values = PartInput(
            part_number=spec.number,
            part_name=spec.name,
            total_questions=spec.total_questions,
            time_limit=spec.time_limit,
            order_index=spec.number,
            status=PartStatus.INACTIVE,
        ).to_payload()
        values.update(PartInput(**overrides).to_payload())
        values["instructions"] = instructions

        body = self.api.post(f"/tests/{test_id}/parts", json=values)
        logger.info("Part created", test_id=test_id, part_number=spec.number)
        return self._record(body)

    def update_part(self, part_id: str, values: PartInput, instructions: str) -> Optional[Part]:
        _require_instructions(instructions)
        payload = {**values.to_payload(), "instructions": instructions}
        body = self.api.patch(f"/parts/{part_id}", json=payload)
        logger.info("Part updated", part_id=part_id)
        return self._record(body)

    def set_status_bulk(self, part_ids: Iterable[str], status: PartStatus) -> BatchResult:
        """
        Activate or deactivate several parts at once.

        Each part is patched independently; parts that were updated stay
        updated even if others fail.
        """
        part_ids = list(dict.fromkeys(part_ids))
        if not part_ids:
            raise ValidationError(notify("parts.select_one"))
        status_value = PartStatus(status).value

        result = fan_out(
            part_ids,
            lambda part_id: self.api.patch(f"/parts/{part_id}", json={"status": status_value}),
            max_workers=self.max_workers,
        )
        logger.info(
            "Part statuses updated",
            status=status_value,
            succeeded=result.succeeded,
            failed=result.failed,
        )
        return result

    def count_questions(self, part_id: str) -> int:
        body = self.api.get(f"/parts/{part_id}/questions")
        return len(body.get("questions") or [])

    def delete_part(self, part_id: str) -> None:
        """
        Delete an empty part.

        Raises:
            PartNotEmptyError: If the part still has questions
        """
        count = self.count_questions(part_id)
        if count > 0:
            raise PartNotEmptyError(
                notify("parts.not_empty", count=count),
                question_count=count,
                details={"part_id": part_id},
            )
        self.api.delete(f"/parts/{part_id}")
        logger.info("Part deleted", part_id=part_id)

    def set_part_audio(self, part_id: str, audio_url: str) -> Optional[Part]:
        """Attach a shared audio file to the whole part."""
        body = self.api.patch(f"/parts/{part_id}", json={"audioUrl": audio_url})
        logger.info("Part audio updated", part_id=part_id)
        return self._record(body)

    @staticmethod
    def _record(body: Dict[str, Any]) -> Optional[Part]:
        data = body.get("part") or body.get("data")
        return Part.model_validate(data) if data else None
