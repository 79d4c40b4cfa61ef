"""
Admin API route handlers.

Thin adapters: parse the JSON body with a request model, call the admin
service and serialize the result. Errors are mapped to HTTP statuses by
the error middleware in `compensation.api.app`.
"""

from typing import Any, TypeVar

from aiohttp import web
from pydantic import BaseModel

from compensation.api.serializers import dumps
from compensation.schemas.api import (
    AdjustmentRequest,
    BatchApproveRequest,
    BulkRankAdjustRequest,
    EnrollRequest,
    PackageRequest,
    PlacementRequest,
    RankAdjustRequest,
    ReviewRequest,
    RunRequest,
    SaveSettingsRequest,
    WalletRequestCreate,
)
from compensation.services.admin_service import CompensationAdminService
from compensation.utils.exceptions import ValidationError


ADMIN_SERVICE = web.AppKey("admin_service", CompensationAdminService)

ModelT = TypeVar("ModelT", bound=BaseModel)

routes = web.RouteTableDef()


def _service(request: web.Request) -> CompensationAdminService:
    return request.app[ADMIN_SERVICE]


def _json(data: Any, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, dumps=dumps)


async def _body(request: web.Request, model: type[ModelT]) -> ModelT:
    if not request.can_read_body:
        return model.model_validate({})
    return model.model_validate(await request.json())


def _path_id(request: web.Request, name: str = "id") -> int:
    try:
        return int(request.match_info[name])
    except ValueError as e:
        raise ValidationError(f"{name} must be an integer") from e


def _query_int(request: web.Request, name: str, default: int) -> int:
    raw = request.query.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValidationError(f"{name} must be an integer") from e
    if value < 0:
        raise ValidationError(f"{name} must not be negative")
    return value


# ----------------------------------------------------------------------
# Settings
# ----------------------------------------------------------------------


@routes.get("/settings")
async def get_settings(request: web.Request) -> web.Response:
    version = request.query.get("version")
    loaded = await _service(request).get_commission_settings(
        int(version) if version is not None and version.isdigit() else None
    )
    return _json(
        {"version": loaded.version, "settings": loaded.settings.model_dump(mode="json")}
    )


@routes.put("/settings")
async def save_settings(request: web.Request) -> web.Response:
    body = await _body(request, SaveSettingsRequest)
    record = await _service(request).save_commission_settings(
        body.settings, saved_by=body.saved_by, comment=body.comment
    )
    return _json({"version": record.version, "saved_at": record.created_at}, status=201)


# ----------------------------------------------------------------------
# Commission runs
# ----------------------------------------------------------------------


@routes.post("/runs/preview")
async def preview_run(request: web.Request) -> web.Response:
    body = await _body(request, RunRequest)
    preview = await _service(request).preview_commission_run(
        body.commission_type, body.date_from, body.date_to
    )
    return _json(preview.to_dict())


@routes.post("/runs")
async def execute_run(request: web.Request) -> web.Response:
    body = await _body(request, RunRequest)
    run = await _service(request).execute_commission_run(
        body.commission_type, body.date_from, body.date_to, triggered_by=body.triggered_by
    )
    return _json(run, status=201)


@routes.get("/runs")
async def run_history(request: web.Request) -> web.Response:
    runs = await _service(request).get_commission_history(
        request.query.get("type"),
        limit=_query_int(request, "limit", 50),
        offset=_query_int(request, "offset", 0),
    )
    return _json(runs)


@routes.get("/runs/{id}")
async def get_run(request: web.Request) -> web.Response:
    return _json(await _service(request).get_commission_run(_path_id(request)))


@routes.post("/runs/{id}/retry")
async def retry_run(request: web.Request) -> web.Response:
    return _json(await _service(request).retry_commission_run(_path_id(request)))


# ----------------------------------------------------------------------
# Members and packages
# ----------------------------------------------------------------------


@routes.post("/members")
async def enroll_member(request: web.Request) -> web.Response:
    body = await _body(request, EnrollRequest)
    member = await _service(request).enroll_member(**body.model_dump())
    return _json(member, status=201)


@routes.post("/members/{id}/placement")
async def place_member(request: web.Request) -> web.Response:
    body = await _body(request, PlacementRequest)
    member = await _service(request).place_member(
        _path_id(request), body.parent_id, body.side, spillover=body.spillover
    )
    return _json(member)


@routes.get("/members/{id}/balance")
async def balance_of(request: web.Request) -> web.Response:
    member_id = _path_id(request)
    balance = await _service(request).balance_of(member_id)
    return _json({"member_id": member_id, "balance": balance})


@routes.get("/members/{id}/ledger")
async def ledger_history(request: web.Request) -> web.Response:
    entries = await _service(request).ledger_history(
        _path_id(request),
        kind=request.query.get("kind"),
        limit=_query_int(request, "limit", 50),
        offset=_query_int(request, "offset", 0),
    )
    return _json(entries)


@routes.get("/members/{id}/rank")
async def rank_progress(request: web.Request) -> web.Response:
    return _json(await _service(request).rank_progress(_path_id(request)))


@routes.post("/members/{id}/rank")
async def adjust_rank(request: web.Request) -> web.Response:
    body = await _body(request, RankAdjustRequest)
    adjustment = await _service(request).adjust_user_rank(
        _path_id(request), body.new_rank, body.reason, admin_id=body.admin_id
    )
    return _json(adjustment)


@routes.post("/members/{id}/rank/evaluate")
async def evaluate_rank(request: web.Request) -> web.Response:
    return _json(await _service(request).evaluate_rank(_path_id(request)))


@routes.get("/members/{id}/binary")
async def binary_stats(request: web.Request) -> web.Response:
    return _json(await _service(request).binary_stats(_path_id(request)))


@routes.get("/members/{id}/booster")
async def booster_status(request: web.Request) -> web.Response:
    return _json(await _service(request).booster_status(_path_id(request)))


@routes.post("/packages")
async def purchase_package(request: web.Request) -> web.Response:
    body = await _body(request, PackageRequest)
    options = body.model_dump(exclude={"member_id", "principal"}, exclude_none=True)
    package = await _service(request).purchase_package(body.member_id, body.principal, **options)
    return _json(package, status=201)


@routes.post("/packages/{id}/cancel")
async def cancel_package(request: web.Request) -> web.Response:
    body = await _body(request, ReviewRequest)
    package = await _service(request).cancel_package(
        _path_id(request), body.reason or "", admin_id=body.admin_id
    )
    return _json(package)


@routes.get("/packages/{id}/roi")
async def roi_progress(request: web.Request) -> web.Response:
    return _json(await _service(request).roi_progress(_path_id(request)))


# ----------------------------------------------------------------------
# Ledger
# ----------------------------------------------------------------------


@routes.post("/adjustments")
async def manual_adjustment(request: web.Request) -> web.Response:
    body = await _body(request, AdjustmentRequest)
    result = await _service(request).manual_adjustment(
        body.member_id,
        body.amount,
        body.direction,
        body.reason,
        admin_id=body.admin_id,
        idempotency_key=body.idempotency_key,
    )
    return _json({"status": result.status, "entry": result.entry}, status=201)


@routes.post("/ledger/{id}/reverse")
async def reverse_entry(request: web.Request) -> web.Response:
    body = await _body(request, ReviewRequest)
    result = await _service(request).reverse_entry(
        _path_id(request), body.reason or "", admin_id=body.admin_id
    )
    return _json({"status": result.status, "entry": result.entry})


@routes.get("/ledger/audit")
async def audit_balances(request: web.Request) -> web.Response:
    mismatches = await _service(request).audit_balances()
    return _json({"mismatches": mismatches, "count": len(mismatches)})


# ----------------------------------------------------------------------
# Deposits and withdrawals
# ----------------------------------------------------------------------


@routes.post("/deposits")
async def request_deposit(request: web.Request) -> web.Response:
    body = await _body(request, WalletRequestCreate)
    deposit = await _service(request).request_deposit(body.member_id, body.amount, body.reference)
    return _json(deposit, status=201)


@routes.post("/deposits/batch-approve")
async def batch_approve_deposits(request: web.Request) -> web.Response:
    body = await _body(request, BatchApproveRequest)
    result = await _service(request).batch_approve_deposits(body.ids, admin_id=body.admin_id)
    return _json(result.to_dict())


@routes.post("/deposits/{id}/approve")
async def approve_deposit(request: web.Request) -> web.Response:
    body = await _body(request, ReviewRequest)
    return _json(await _service(request).approve_deposit(_path_id(request), body.admin_id))


@routes.post("/deposits/{id}/reject")
async def reject_deposit(request: web.Request) -> web.Response:
    body = await _body(request, ReviewRequest)
    deposit = await _service(request).reject_deposit(
        _path_id(request), body.reason or "", admin_id=body.admin_id
    )
    return _json(deposit)


@routes.post("/withdrawals")
async def request_withdrawal(request: web.Request) -> web.Response:
    body = await _body(request, WalletRequestCreate)
    withdrawal = await _service(request).request_withdrawal(
        body.member_id, body.amount, body.reference
    )
    return _json(withdrawal, status=201)


@routes.get("/withdrawals")
async def list_withdrawals(request: web.Request) -> web.Response:
    withdrawals = await _service(request).list_withdrawals(
        request.query.get("status", "pending"),
        limit=_query_int(request, "limit", 100),
        offset=_query_int(request, "offset", 0),
    )
    return _json(withdrawals)


@routes.post("/withdrawals/batch-approve")
async def batch_approve_withdrawals(request: web.Request) -> web.Response:
    body = await _body(request, BatchApproveRequest)
    result = await _service(request).batch_approve_withdrawals(body.ids, admin_id=body.admin_id)
    return _json(result.to_dict())


@routes.post("/withdrawals/{id}/approve")
async def approve_withdrawal(request: web.Request) -> web.Response:
    body = await _body(request, ReviewRequest)
    return _json(await _service(request).approve_withdrawal(_path_id(request), body.admin_id))


@routes.post("/withdrawals/{id}/reject")
async def reject_withdrawal(request: web.Request) -> web.Response:
    body = await _body(request, ReviewRequest)
    withdrawal = await _service(request).reject_withdrawal(
        _path_id(request), body.reason, admin_id=body.admin_id
    )
    return _json(withdrawal)


@routes.post("/withdrawals/{id}/hold")
async def hold_withdrawal(request: web.Request) -> web.Response:
    body = await _body(request, ReviewRequest)
    withdrawal = await _service(request).hold_withdrawal(
        _path_id(request), body.reason or "", admin_id=body.admin_id
    )
    return _json(withdrawal)


@routes.get("/stats")
async def financial_stats(request: web.Request) -> web.Response:
    return _json(await _service(request).financial_stats())


# ----------------------------------------------------------------------
# Ranks
# ----------------------------------------------------------------------


@routes.get("/ranks/achievements")
async def rank_achievements(request: web.Request) -> web.Response:
    member_id = request.query.get("member_id")
    achievements = await _service(request).get_rank_achievements(
        member_id=int(member_id) if member_id and member_id.isdigit() else None,
        reward_status=request.query.get("reward_status"),
        rank_code=request.query.get("rank"),
        limit=_query_int(request, "limit", 100),
        offset=_query_int(request, "offset", 0),
    )
    return _json(achievements)


@routes.post("/ranks/achievements/{id}/pay")
async def pay_reward(request: web.Request) -> web.Response:
    body = await _body(request, ReviewRequest)
    return _json(await _service(request).pay_reward(_path_id(request), admin_id=body.admin_id))


@routes.post("/ranks/achievements/{id}/cancel")
async def cancel_reward(request: web.Request) -> web.Response:
    body = await _body(request, ReviewRequest)
    achievement = await _service(request).cancel_reward(
        _path_id(request), body.reason or "", admin_id=body.admin_id
    )
    return _json(achievement)


@routes.post("/ranks/bulk-adjust")
async def bulk_adjust_rank(request: web.Request) -> web.Response:
    body = await _body(request, BulkRankAdjustRequest)
    result = await _service(request).bulk_adjust_rank(
        [(item.member_id, item.new_rank) for item in body.items],
        body.reason,
        admin_id=body.admin_id,
    )
    return _json(result.to_dict())
