"""Aggregate figures over returns and refunds for reporting."""

from collections import Counter

from aftersales.refunds.refund import Refund, RefundMethod, RefundStatus
from aftersales.returns.return_request import ReturnReason, ReturnRequest, ReturnStatus


def return_statistics(returns: list[ReturnRequest]) -> dict:
    by_status = Counter(r.status for r in returns)
    by_reason = Counter(r.reason for r in returns)
    return {
        "total": len(returns),
        "by_status": {status.value: by_status.get(status.value, 0) for status in ReturnStatus},
        "by_reason": {reason.value: by_reason[reason.value] for reason in ReturnReason if by_reason[reason.value]},
        "total_return_value": round(sum(r.total_return_value or 0.0 for r in returns), 2),
        "total_refund_amount": round(sum(r.total_refund_amount or 0.0 for r in returns), 2),
        "total_processing_fees": round(sum(r.processing_fee or 0.0 for r in returns), 2),
    }


def refund_statistics(refunds: list[Refund]) -> dict:
    by_status = Counter(r.status for r in refunds)
    completed = [r for r in refunds if r.status == RefundStatus.COMPLETED.value]

    by_method = {}
    for method in RefundMethod:
        matching = [r for r in refunds if r.method == method.value]
        if matching:
            by_method[method.value] = {
                "count": len(matching),
                "total": round(sum(r.amount or 0.0 for r in matching), 2),
            }

    return {
        "total": len(refunds),
        "by_status": {status.value: by_status.get(status.value, 0) for status in RefundStatus},
        "total_refunded": round(sum(r.amount or 0.0 for r in completed), 2),
        "total_processing_fees": round(sum(r.processing_fee or 0.0 for r in refunds), 2),
        "by_method": by_method,
    }
