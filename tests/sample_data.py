"""Shared sample records for pytest."""

ADMIN_USER = {
    "id": "u-admin",
    "email": "admin@toeic.test",
    "name": "Admin",
    "role": "ADMIN",
}


def part_record(part_id="p1", number=1, **overrides):
    record = {
        "id": part_id,
        "testId": "t1",
        "partNumber": number,
        "partName": f"Part {number}",
        "totalQuestions": 6,
        "completedQuestions": 0,
        "status": "INACTIVE",
    }
    record.update(overrides)
    return record


def question_record(number, passage=None, question_id=None, **overrides):
    record = {
        "id": question_id or f"q{number}",
        "partId": "p1",
        "questionNumber": number,
        "questionText": f"Question {number}",
        "optionA": "a",
        "optionB": "b",
        "optionC": "c",
        "optionD": "d",
        "correctAnswer": "A",
        "passage": passage,
    }
    record.update(overrides)
    return record
