# resumedesk/api/v1/orders.py
from typing import Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from resumedesk.api.v1.auth import get_current_user
from resumedesk.api.v1.schemas import OrderOut
from resumedesk.db.models import Gateway, User
from resumedesk.db.session import get_db
from resumedesk.services import checkout as checkout_service
from resumedesk.services import orders as coordinator
from resumedesk.services.gateways.base import PaymentGateway
from resumedesk.services.gateways.registry import get_gateways

router = APIRouter()

# plain `def` handlers run in the threadpool; the async ones await the gateway
# and hand session work to the threadpool themselves


@router.get("/orders", response_model=List[OrderOut])
def list_orders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return coordinator.list_user_orders(db, user.id)


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return coordinator.get_user_order(db, order_id, user.id)


@router.post("/orders/{order_id}/refresh", response_model=OrderOut)
async def refresh_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateways: Dict[Gateway, PaymentGateway] = Depends(get_gateways),
):
    order = await run_in_threadpool(coordinator.get_user_order, db, order_id, user.id)
    return await checkout_service.refresh_order(db, order, gateways[order.gateway])


@router.post("/orders/{order_id}/cancel", response_model=OrderOut)
async def cancel_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateways: Dict[Gateway, PaymentGateway] = Depends(get_gateways),
):
    order = await run_in_threadpool(coordinator.get_user_order, db, order_id, user.id)
    return await checkout_service.cancel_checkout(db, order, gateways[order.gateway])
