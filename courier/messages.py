"""
User-facing strings for transition outcomes and order statuses (en, ar).
Language is always passed explicitly; unknown languages and keys fall back to English.
"""
from courier.order_state import OrderStatus, TransitionError

SUPPORTED_LANGUAGES = ("en", "ar")

TRANSLATIONS: dict[str, dict[str, str]] = {
    "en": {
        "error.UNAUTHORIZED": "You are not allowed to perform this action on this order.",
        "error.INVALID_EDGE": "This action is no longer available. Refresh to see the current order status.",
        "error.TERMINAL_STATE": "This order is finished and can no longer be changed.",
        "orderStatus.PENDING": "Pending",
        "orderStatus.ACCEPTED": "Accepted",
        "orderStatus.PICKED_UP": "Picked Up",
        "orderStatus.IN_TRANSIT": "In Transit",
        "orderStatus.DELIVERED": "Delivered",
        "orderStatus.CANCELLED": "Cancelled",
        "order.statusUpdated": "Order status updated to {0}",
        "order.cancelled": "Order cancelled successfully",
        "order.unchanged": "Order is already {0}",
    },
    "ar": {
        "error.UNAUTHORIZED": "غير مسموح لك بتنفيذ هذا الإجراء على هذا الطلب.",
        "error.INVALID_EDGE": "هذا الإجراء لم يعد متاحًا. يرجى التحديث لعرض حالة الطلب الحالية.",
        "error.TERMINAL_STATE": "هذا الطلب منتهٍ ولا يمكن تغييره.",
        "orderStatus.PENDING": "قيد الانتظار",
        "orderStatus.ACCEPTED": "مقبول",
        "orderStatus.PICKED_UP": "تم الاستلام",
        "orderStatus.IN_TRANSIT": "قيد النقل",
        "orderStatus.DELIVERED": "تم التوصيل",
        "orderStatus.CANCELLED": "ملغي",
        "order.statusUpdated": "تم تحديث حالة الطلب إلى {0}",
        "order.cancelled": "تم إلغاء الطلب بنجاح",
        "order.unchanged": "الطلب بالفعل {0}",
    },
}


def normalize_language(value: str | None, default: str = "en") -> str:
    """Pick a supported language from an Accept-Language style value."""
    if value:
        for part in value.split(","):
            lang = part.split(";")[0].strip().lower()[:2]
            if lang in SUPPORTED_LANGUAGES:
                return lang
    return default if default in SUPPORTED_LANGUAGES else "en"


def translate(key: str, language: str, *args: str) -> str:
    text = TRANSLATIONS.get(language, {}).get(key) or TRANSLATIONS["en"].get(key, key)
    for i, arg in enumerate(args):
        text = text.replace(f"{{{i}}}", arg)
    return text


def error_message(error: TransitionError, language: str) -> str:
    return translate(f"error.{error.value}", language)


def status_label(status: OrderStatus, language: str) -> str:
    return translate(f"orderStatus.{status.value}", language)


def transition_message(status: OrderStatus, language: str, noop: bool = False) -> str:
    if noop:
        return translate("order.unchanged", language, status_label(status, language))
    if status is OrderStatus.CANCELLED:
        return translate("order.cancelled", language)
    return translate("order.statusUpdated", language, status_label(status, language))
