import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from .config import settings
from .logger import configure_logging
from .logic import select_best_coupon
from .models import (
    BestCouponRequest,
    BestCouponResponse,
    Coupon,
    CouponSummary,
    CreateCouponResponse,
)
from .storage import CouponCatalog, DuplicateCouponError, UsageLedger

logger = logging.getLogger(__name__)


def get_catalog(request: Request) -> CouponCatalog:
    return request.app.state.catalog


def get_ledger(request: Request) -> UsageLedger:
    return request.app.state.ledger


def create_app(
    catalog: Optional[CouponCatalog] = None,
    ledger: Optional[UsageLedger] = None,
) -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.state.catalog = catalog if catalog is not None else CouponCatalog()
    app.state.ledger = ledger if ledger is not None else UsageLedger()

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "Coupon Management System is running!"

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    # coupons are echoed with only the fields the caller sent
    @app.post(
        "/coupons",
        response_model=CreateCouponResponse,
        response_model_exclude_unset=True,
        status_code=201,
    )
    def create_coupon(coupon: Coupon, catalog: CouponCatalog = Depends(get_catalog)):
        try:
            catalog.add(coupon)
        except DuplicateCouponError:
            logger.warning("Rejected duplicate coupon code %s", coupon.code)
            raise HTTPException(status_code=409, detail="Coupon code already exists")
        return CreateCouponResponse(message="Coupon created successfully", coupon=coupon)

    # Debug listing of the whole catalog
    @app.get("/coupons", response_model=List[Coupon], response_model_exclude_unset=True)
    def list_coupons(catalog: CouponCatalog = Depends(get_catalog)):
        return catalog.snapshot()

    @app.post(
        "/best-coupon",
        response_model=BestCouponResponse,
        response_model_exclude_unset=True,
    )
    def get_best_coupon(
        payload: BestCouponRequest,
        catalog: CouponCatalog = Depends(get_catalog),
        ledger: UsageLedger = Depends(get_ledger),
    ):
        result = select_best_coupon(catalog, ledger, payload.user, payload.cart)

        if result.coupon is None:
            return BestCouponResponse(bestCoupon=None, discountAmount=0.0, cartValue=result.cart_value)

        best = result.coupon
        return BestCouponResponse(
            bestCoupon=CouponSummary(
                code=best.code,
                description=best.description,
                discountType=best.discountType,
                discountValue=best.discountValue,
                discountAmount=result.discount,
            ),
            cartValue=result.cart_value,
            message="Best coupon selected successfully",
        )

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "coupon_management.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False,  # keep False to avoid Windows reload issues
    )


if __name__ == "__main__":
    run()
