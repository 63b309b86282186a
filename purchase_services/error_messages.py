"""
purchase_services.error_messages -- Localized caller-facing error text.

Every ErrorKind has a stable message per locale.  Specific error codes
may override the kind message, and InvalidTransition messages are
chosen per action so the caller learns what was attempted.
"""

from __future__ import annotations

from purchase_kernel.exceptions import (
    ErrorKind,
    InvalidTransitionError,
    PurchaseWorkflowError,
)

DEFAULT_LOCALE = "en"

_KIND_MESSAGES: dict[str, dict[ErrorKind, str]] = {
    "en": {
        ErrorKind.UNAUTHENTICATED: "Please sign in first.",
        ErrorKind.FORBIDDEN: "You do not have permission to perform this action.",
        ErrorKind.NOT_FOUND: "The purchase request does not exist.",
        ErrorKind.INVALID_TRANSITION: "This action is not allowed in the current status.",
        ErrorKind.VALIDATION: "The submitted data is invalid.",
        ErrorKind.NO_APPLICABLE_APPROVER: "No approver is available for this request.",
        ErrorKind.CONFIGURATION: "The approval workflow is misconfigured.",
        ErrorKind.DOWNSTREAM_FAILURE: "A dependent service failed. Please try again later.",
    },
    "zh-CN": {
        ErrorKind.UNAUTHENTICATED: "请先登录。",
        ErrorKind.FORBIDDEN: "您没有执行此操作的权限。",
        ErrorKind.NOT_FOUND: "采购申请不存在。",
        ErrorKind.INVALID_TRANSITION: "当前状态不允许执行此操作。",
        ErrorKind.VALIDATION: "提交的数据无效。",
        ErrorKind.NO_APPLICABLE_APPROVER: "该申请没有可用的审批人。",
        ErrorKind.CONFIGURATION: "审批流程配置有误。",
        ErrorKind.DOWNSTREAM_FAILURE: "依赖服务出错，请稍后重试。",
    },
}

_CODE_MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "NOT_REQUEST_OWNER": "Only the requester can perform this action.",
        "NOT_PENDING_APPROVER": "You are not the current approver of this request.",
        "TRANSFER_TARGET_NOT_FOUND": "The transfer target does not exist.",
        "REASON_REQUIRED": "A reason is required for this action.",
        "TRANSFER_TARGET_REQUIRED": "Please choose who to transfer the approval to.",
        "SELF_TRANSFER": "You cannot transfer an approval to yourself.",
        "TRANSFER_TARGET_NOT_APPROVER": "The transfer target cannot approve purchases.",
        "INVALID_PAYMENT_AMOUNT": "The payment amount must be greater than zero.",
        "PAYMENT_EXCEEDS_REMAINING": "The payment amount exceeds the remaining balance.",
        "INVOICE_REQUIRED": "Attach at least one invoice before submitting reimbursement.",
        "UNKNOWN_ACTION": "Unknown action.",
        "INVALID_QUANTITY": "Quantity must be greater than zero.",
        "INVALID_UNIT_PRICE": "Unit price must not be negative.",
        "INVALID_FEE_AMOUNT": "Fee amount must not be negative.",
        "INVALID_ORGANIZATION_TYPE": "Organization type must be school or company.",
        "MISSING_ITEM_NAME": "Item name is required.",
        "WORKFLOW_CONFIG_INVALID": "The workflow configuration is invalid.",
    },
    "zh-CN": {
        "NOT_REQUEST_OWNER": "只有申请人可以执行此操作。",
        "NOT_PENDING_APPROVER": "您不是该申请的当前审批人。",
        "TRANSFER_TARGET_NOT_FOUND": "转交对象不存在。",
        "REASON_REQUIRED": "此操作必须填写原因。",
        "TRANSFER_TARGET_REQUIRED": "请选择转交对象。",
        "SELF_TRANSFER": "不能将审批转交给自己。",
        "TRANSFER_TARGET_NOT_APPROVER": "转交对象没有审批权限。",
        "INVALID_PAYMENT_AMOUNT": "付款金额必须大于零。",
        "PAYMENT_EXCEEDS_REMAINING": "付款金额超过剩余未付金额。",
        "INVOICE_REQUIRED": "提交报销前请至少上传一张发票。",
        "UNKNOWN_ACTION": "未知操作。",
        "INVALID_QUANTITY": "数量必须大于零。",
        "INVALID_UNIT_PRICE": "单价不能为负数。",
        "INVALID_FEE_AMOUNT": "费用不能为负数。",
        "INVALID_ORGANIZATION_TYPE": "组织类型必须是学校或公司。",
        "MISSING_ITEM_NAME": "物品名称不能为空。",
        "WORKFLOW_CONFIG_INVALID": "审批流程配置无效。",
    },
}

_TRANSITION_MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "submit": "Only draft requests can be submitted.",
        "approve": "Only requests pending approval can be approved.",
        "reject": "Only requests pending approval can be rejected.",
        "transfer": "Only requests pending approval can be transferred.",
        "withdraw": "Only requests pending approval can be withdrawn.",
        "submit_reimbursement": "Reimbursement cannot be submitted for this request now.",
        "pay": "This request cannot be paid in its current status.",
        "issue": "A payment issue cannot be marked on this request now.",
        "resolve_issue": "This request has no open payment issue.",
        "cancel": "Only draft requests can be cancelled.",
    },
    "zh-CN": {
        "submit": "只有草稿状态的申请可以提交。",
        "approve": "只有待审批的申请可以审批通过。",
        "reject": "只有待审批的申请可以驳回。",
        "transfer": "只有待审批的申请可以转交。",
        "withdraw": "只有待审批的申请可以撤回。",
        "submit_reimbursement": "当前无法为该申请提交报销。",
        "pay": "当前状态下无法付款。",
        "issue": "当前无法为该申请标记付款异常。",
        "resolve_issue": "该申请没有未处理的付款异常。",
        "cancel": "只有草稿状态的申请可以取消。",
    },
}

_CONCURRENT_MESSAGE = {
    "en": "The request was changed by someone else. Refresh and try again.",
    "zh-CN": "该申请已被他人处理，请刷新后重试。",
}


def supported_locales() -> tuple[str, ...]:
    return tuple(_KIND_MESSAGES)


def _locale(locale: str | None) -> str:
    return locale if locale in _KIND_MESSAGES else DEFAULT_LOCALE


def message_for_kind(kind: ErrorKind, locale: str | None = None) -> str:
    return _KIND_MESSAGES[_locale(locale)][kind]


def message_for(exc: PurchaseWorkflowError, locale: str | None = None) -> str:
    """Caller-facing message for ``exc`` in ``locale`` (falls back to en)."""
    loc = _locale(locale)
    if exc.code == "CONCURRENT_TRANSITION":
        return _CONCURRENT_MESSAGE[loc]
    if isinstance(exc, InvalidTransitionError):
        by_action = _TRANSITION_MESSAGES[loc].get(exc.action)
        if by_action is not None:
            return by_action
    by_code = _CODE_MESSAGES[loc].get(exc.code)
    if by_code is not None:
        return by_code
    return _KIND_MESSAGES[loc][exc.kind]
