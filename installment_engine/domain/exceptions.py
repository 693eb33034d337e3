"""Domain-specific exceptions with bilingual (Arabic / English) messages"""

from enum import Enum
from typing import Dict, Optional, Tuple


class ErrorKind(str, Enum):
    """Stable identifiers for every error the engine can surface"""

    # Validation
    INVALID_INSTALLMENT_COUNT = "invalid_installment_count"
    INVALID_FREQUENCY = "invalid_frequency"
    INVALID_START_DATE = "invalid_start_date"
    AMOUNT_MISMATCH = "amount_mismatch"
    TERMS_NOT_ACCEPTED = "terms_not_accepted"
    INVALID_PAYMENT_AMOUNT = "invalid_payment_amount"
    INVALID_MODIFICATION = "invalid_modification"
    AUTO_PAY_METHOD_REQUIRED = "auto_pay_method_required"

    # Conflict
    INVOICE_NOT_FOUND = "invoice_not_found"
    ALREADY_PAID = "already_paid"
    NO_OUTSTANDING_BALANCE = "no_outstanding_balance"
    ACTIVE_PLAN_EXISTS = "active_plan_exists"
    PLAN_NOT_FOUND = "plan_not_found"
    PLAN_NOT_ACTIVE = "plan_not_active"
    INSTALLMENT_NOT_FOUND = "installment_not_found"
    INSTALLMENT_ALREADY_PAID = "installment_already_paid"

    # Downstream
    INSTALLMENT_CREATION_FAILED = "installment_creation_failed"
    PERSISTENCE_ERROR = "persistence_error"
    PAYMENT_GATEWAY_ERROR = "payment_gateway_error"


# (message_ar, message_en)
MESSAGES: Dict[ErrorKind, Tuple[str, str]] = {
    ErrorKind.INVALID_INSTALLMENT_COUNT: (
        "عدد الأقساط يجب أن يكون أكبر من صفر",
        "Number of installments must be greater than zero",
    ),
    ErrorKind.INVALID_FREQUENCY: (
        "تكرار الدفع غير صالح",
        "Payment frequency must be weekly, biweekly or monthly",
    ),
    ErrorKind.INVALID_START_DATE: (
        "تاريخ البداية يجب أن يكون في المستقبل",
        "Start date must be in the future",
    ),
    ErrorKind.AMOUNT_MISMATCH: (
        "مجموع مبالغ الأقساط لا يساوي المبلغ الإجمالي",
        "Installment amounts do not add up to the total amount",
    ),
    ErrorKind.TERMS_NOT_ACCEPTED: (
        "يجب الموافقة على الشروط والأحكام",
        "Terms and conditions must be accepted",
    ),
    ErrorKind.INVALID_PAYMENT_AMOUNT: (
        "مبلغ الدفع غير صالح",
        "Payment amount must be greater than zero and not exceed the outstanding balance",
    ),
    ErrorKind.INVALID_MODIFICATION: (
        "التعديل المقترح غير صالح",
        "Proposed schedule is not valid for this plan",
    ),
    ErrorKind.AUTO_PAY_METHOD_REQUIRED: (
        "يجب تحديد طريقة الدفع عند تفعيل الدفع التلقائي",
        "A payment method is required when auto-pay is enabled",
    ),
    ErrorKind.INVOICE_NOT_FOUND: (
        "لم يتم العثور على الفاتورة",
        "Invoice not found",
    ),
    ErrorKind.ALREADY_PAID: (
        "الفاتورة مدفوعة بالكامل",
        "Invoice already paid in full",
    ),
    ErrorKind.NO_OUTSTANDING_BALANCE: (
        "لا يوجد رصيد مستحق لإنشاء خطة دفع",
        "No outstanding balance to create payment plan",
    ),
    ErrorKind.ACTIVE_PLAN_EXISTS: (
        "توجد خطة دفع نشطة لهذه الفاتورة",
        "Invoice already has an active payment plan",
    ),
    ErrorKind.PLAN_NOT_FOUND: (
        "لم يتم العثور على خطة الدفع",
        "Payment plan not found",
    ),
    ErrorKind.PLAN_NOT_ACTIVE: (
        "يمكن تعديل خطط الدفع النشطة فقط",
        "Only active payment plans can be changed",
    ),
    ErrorKind.INSTALLMENT_NOT_FOUND: (
        "لم يتم العثور على القسط",
        "Installment not found",
    ),
    ErrorKind.INSTALLMENT_ALREADY_PAID: (
        "القسط مدفوع بالفعل",
        "Installment already paid",
    ),
    ErrorKind.INSTALLMENT_CREATION_FAILED: (
        "خطأ في إنشاء جدول الدفعات",
        "Error creating payment schedule",
    ),
    ErrorKind.PERSISTENCE_ERROR: (
        "خطأ في حفظ البيانات",
        "Error saving data",
    ),
    ErrorKind.PAYMENT_GATEWAY_ERROR: (
        "خدمة الدفع غير متاحة",
        "Payment gateway unavailable",
    ),
}


class DomainException(Exception):
    """Base exception for domain layer"""

    kind: ErrorKind = ErrorKind.PERSISTENCE_ERROR
    category: str = "downstream"

    def __init__(self, detail: Optional[str] = None):
        self.message_ar, self.message_en = MESSAGES[self.kind]
        self.detail = detail
        super().__init__(f"{self.message_ar} / {self.message_en}")

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "error": self.kind.value,
            "message_ar": self.message_ar,
            "message_en": self.message_en,
            "detail": self.detail,
        }


class ValidationError(DomainException):
    """Caller supplied invalid input; never retried"""

    category = "validation"


class ConflictError(DomainException):
    """Request conflicts with current entity state"""

    category = "conflict"


class DownstreamError(DomainException):
    """Persistence or external service failure"""

    category = "downstream"


class InvalidInstallmentCount(ValidationError):
    kind = ErrorKind.INVALID_INSTALLMENT_COUNT


class InvalidFrequency(ValidationError):
    kind = ErrorKind.INVALID_FREQUENCY


class InvalidStartDate(ValidationError):
    kind = ErrorKind.INVALID_START_DATE


class AmountMismatch(ValidationError):
    kind = ErrorKind.AMOUNT_MISMATCH


class TermsNotAccepted(ValidationError):
    kind = ErrorKind.TERMS_NOT_ACCEPTED


class InvalidPaymentAmount(ValidationError):
    kind = ErrorKind.INVALID_PAYMENT_AMOUNT


class InvalidModification(ValidationError):
    kind = ErrorKind.INVALID_MODIFICATION


class AutoPayMethodRequired(ValidationError):
    kind = ErrorKind.AUTO_PAY_METHOD_REQUIRED


class InvoiceNotFound(ConflictError):
    kind = ErrorKind.INVOICE_NOT_FOUND


class AlreadyPaid(ConflictError):
    kind = ErrorKind.ALREADY_PAID


class NoOutstandingBalance(ConflictError):
    kind = ErrorKind.NO_OUTSTANDING_BALANCE


class ActivePlanExists(ConflictError):
    kind = ErrorKind.ACTIVE_PLAN_EXISTS


class PlanNotFound(ConflictError):
    kind = ErrorKind.PLAN_NOT_FOUND


class PlanNotActive(ConflictError):
    kind = ErrorKind.PLAN_NOT_ACTIVE


class InstallmentNotFound(ConflictError):
    kind = ErrorKind.INSTALLMENT_NOT_FOUND


class InstallmentAlreadyPaid(ConflictError):
    kind = ErrorKind.INSTALLMENT_ALREADY_PAID


class InstallmentCreationFailed(DownstreamError):
    """Installment rows could not be written; the plan row has been removed"""

    kind = ErrorKind.INSTALLMENT_CREATION_FAILED


class PersistenceError(DownstreamError):
    kind = ErrorKind.PERSISTENCE_ERROR


class PaymentGatewayError(DownstreamError):
    """Payment gateway returned an error or is unavailable"""

    kind = ErrorKind.PAYMENT_GATEWAY_ERROR
