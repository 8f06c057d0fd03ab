"""Coupon API routes."""

from fastapi import APIRouter

from src.api.deps import CurrentUser
from src.schemas.coupon import CouponResponse, CouponValidateRequest, CouponValidateResponse
from src.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.get(
    "",
    response_model=CouponResponse | None,
    summary="Get my coupon",
    description="Returns the current user's most recent active coupon, or null.",
)
async def get_my_coupon(user: CurrentUser) -> CouponResponse | None:
    service = CouponService()
    coupon = await service.get_active_coupon(user.user_id)
    return CouponResponse.model_validate(coupon) if coupon else None


@router.post(
    "/validate",
    response_model=CouponValidateResponse,
    summary="Validate coupon",
    description="Checks that a coupon belongs to the current user, is active and has not expired.",
)
async def validate_coupon(data: CouponValidateRequest, user: CurrentUser) -> CouponValidateResponse:
    """Validate a coupon before checkout.

    Expired coupons are deactivated as a side effect.
    """
    service = CouponService()
    coupon = await service.validate_coupon(data.code, user.user_id)

    return CouponValidateResponse(
        code=coupon["code"],
        discount_percentage=coupon["discount_percentage"],
        expiration_date=coupon["expiration_date"],
    )
