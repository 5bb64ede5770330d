"""
Localized user-facing notifications.

Every service error or success that reaches the operator is phrased through
this catalog so the console speaks the configured locale.
"""

from typing import Dict, Optional

from toeic_admin.core.config import get_settings

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "login.success": "Logged in as {name}.",
        "login.failed": "Login failed.",
        "login.not_admin": "You do not have access to the admin console!",
        "network.error": "Could not connect to the server.",
        "network.timeout": "The server did not respond in time.",
        "logout.success": "Logged out.",
        "session.missing": "Not logged in. Run 'toeic-admin login' first.",
        "session.expired": "Session expired after {minutes} minutes of inactivity. Please log in again.",
        "tests.created": "Exam created successfully!",
        "tests.updated": "Exam updated successfully!",
        "tests.deleted": "Exam deleted successfully!",
        "parts.created": "Part created successfully!",
        "parts.updated": "Part updated successfully!",
        "parts.deleted": "Part deleted successfully!",
        "parts.instructions_required": "Please enter the instructions for this part.",
        "parts.select_one": "Please select at least one part.",
        "parts.activated": "Activated {count} part(s).",
        "parts.deactivated": "Deactivated {count} part(s).",
        "parts.bulk_failed": "Bulk status update failed for {failed} of {total} part(s).",
        "parts.not_empty": "This part has {count} question(s). Delete the questions before deleting the part.",
        "parts.audio_updated": "Part audio updated.",
        "questions.created": "Question created successfully!",
        "questions.batch_created": "Created {count} question(s) successfully!",
        "questions.updated": "Question updated successfully!",
        "questions.synced": "Question updated and passage synchronized across {count} question(s).",
        "questions.sync_failed": "An error occurred while synchronizing the passage.",
        "questions.passage_updated": "Passage updated successfully!",
        "questions.deleted": "Deleted {count} question(s).",
        "questions.deleted_all": "Deleted all questions.",
        "questions.select_one": "Please select at least one question.",
        "questions.imported": "Import successful! Added {count} question(s).",
        "questions.template_written": "Template written to {path}.",
        "questions.duplicates": "Questions {numbers} already exist! Suggestion: start from question {suggestion}.",
        "questions.partial_passages": "Created {succeeded}/{total} passages. Please check the rest.",
        "questions.passages_created": "Created {count} passage(s) successfully.",
        "questions.batch_failed": "{failed} of {total} request(s) failed; earlier successes were kept.",
        "media.uploaded": "Uploaded: {url}",
        "media.upload_failed": "Upload failed.",
        "media.avatar_updated": "Avatar updated successfully!",
        "users.created": "User created successfully!",
        "users.updated": "User updated successfully!",
    },
    "vi": {
        "login.success": "Đăng nhập thành công! Xin chào {name}.",
        "login.failed": "Đăng nhập thất bại",
        "login.not_admin": "Bạn không có quyền truy cập Trang quản trị!",
        "network.error": "Lỗi kết nối server",
        "network.timeout": "Server không phản hồi, vui lòng thử lại",
        "logout.success": "Đã đăng xuất.",
        "session.missing": "Chưa đăng nhập. Hãy chạy 'toeic-admin login' trước.",
        "session.expired": "Phiên làm việc đã hết hạn sau {minutes} phút không hoạt động. Vui lòng đăng nhập lại.",
        "tests.created": "Tạo đề thi thành công!",
        "tests.updated": "Cập nhật đề thi thành công!",
        "tests.deleted": "Đã xóa đề thi thành công!",
        "parts.created": "Tạo Part thành công!",
        "parts.updated": "Cập nhật Part thành công!",
        "parts.deleted": "Xóa Part thành công!",
        "parts.instructions_required": "Vui lòng nhập hướng dẫn cho Part này",
        "parts.select_one": "Vui lòng chọn ít nhất một Part",
        "parts.activated": "Đã kích hoạt {count} Part",
        "parts.deactivated": "Đã vô hiệu hóa {count} Part",
        "parts.bulk_failed": "Có lỗi xảy ra khi cập nhật hàng loạt ({failed}/{total} Part)",
        "parts.not_empty": "Part này có {count} câu hỏi. Bạn cần xóa câu hỏi trước khi xóa Part.",
        "parts.audio_updated": "Đã cập nhật Audio chung cho Part.",
        "questions.created": "Tạo câu hỏi thành công!",
        "questions.batch_created": "Tạo {count} câu hỏi thành công!",
        "questions.updated": "Cập nhật câu hỏi thành công",
        "questions.synced": "Cập nhật câu hỏi và đồng bộ đoạn văn thành công ({count} câu)",
        "questions.sync_failed": "Có lỗi xảy ra khi đồng bộ đoạn văn",
        "questions.passage_updated": "Cập nhật đoạn văn thành công!",
        "questions.deleted": "Đã xóa {count} câu hỏi",
        "questions.deleted_all": "Đã xóa tất cả câu hỏi",
        "questions.select_one": "Vui lòng chọn ít nhất một câu hỏi",
        "questions.imported": "Import thành công! Đã thêm {count} câu hỏi.",
        "questions.template_written": "Đã tạo file mẫu {path}.",
        "questions.duplicates": "Các câu {numbers} đã tồn tại! Gợi ý: Bắt đầu từ câu {suggestion}",
        "questions.partial_passages": "Đã tạo {succeeded}/{total} đoạn văn. Vui lòng kiểm tra lại.",
        "questions.passages_created": "Đã tạo thành công {count} đoạn văn",
        "questions.batch_failed": "{failed}/{total} yêu cầu thất bại; các yêu cầu thành công trước đó được giữ nguyên.",
        "media.uploaded": "Đã tải lên: {url}",
        "media.upload_failed": "Upload thất bại!",
        "media.avatar_updated": "Cập nhật avatar thành công!",
        "users.created": "Tạo user thành công!",
        "users.updated": "Cập nhật user thành công!",
    },
}


def notify(key: str, locale: Optional[str] = None, **fields) -> str:
    """Format a notification in the given (or configured) locale.

    Falls back to English, then to the key itself.
    """
    locale = locale or get_settings().locale
    template = MESSAGES.get(locale, {}).get(key) or MESSAGES["en"].get(key)
    if template is None:
        return key
    try:
        return template.format(**fields)
    except (KeyError, IndexError):
        return template
