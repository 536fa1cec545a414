# resumedesk/api/v1/checkout.py
from typing import Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from resumedesk.api.v1.auth import get_current_user
from resumedesk.api.v1.packages import client_ip
from resumedesk.api.v1.schemas import CheckoutIn, CheckoutOut, WebhookAck
from resumedesk.db.models import Gateway, User
from resumedesk.db.session import get_db
from resumedesk.services import checkout as checkout_service
from resumedesk.services.catalog import PackageCatalog, get_catalog
from resumedesk.services.gateways.base import PaymentGateway
from resumedesk.services.gateways.registry import get_gateways, infer_gateway, parse_gateway

router = APIRouter()


@router.post("/checkout", response_model=CheckoutOut)
async def checkout(
    payload: CheckoutIn,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    catalog: PackageCatalog = Depends(get_catalog),
    gateways: Dict[Gateway, PaymentGateway] = Depends(get_gateways),
):
    country = payload.country_code or request.headers.get("cf-ipcountry")
    gateway = payload.gateway or infer_gateway(country)
    result = await checkout_service.start_checkout(
        db,
        user,
        plan=payload.plan,
        gateway=gateway,
        adapter=gateways[gateway],
        catalog=catalog,
        country_code=country,
        ip=client_ip(request),
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
    )
    return CheckoutOut(redirect_url=result.redirect_url, order_id=result.order.id, session_id=result.session_id)


@router.post("/webhooks/{gateway_name}", response_model=WebhookAck)
async def webhook(
    gateway_name: str,
    request: Request,
    db: Session = Depends(get_db),
    gateways: Dict[Gateway, PaymentGateway] = Depends(get_gateways),
):
    """
    Signature-verified gateway callback. 200 once handled, including events
    that are acknowledged without changing any order; 400 on bad signature.
    """
    gateway = parse_gateway(gateway_name)
    raw = await request.body()
    order = await run_in_threadpool(
        checkout_service.handle_notification,
        db,
        gateway,
        gateways[gateway],
        raw,
        headers=request.headers,
        query_params=request.query_params,
    )
    return WebhookAck(received=True, ignored=order is None)
