from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.customer import Customer, CustomerService
from app.models.network import Router


def validate_router_exists(db: Session, router_id: int) -> Router:
    router = db.get(Router, router_id)
    if not router:
        raise HTTPException(status_code=404, detail="Router not found")
    return router


def validate_ip_binding(
    db: Session,
    customer_id: int,
    service_id: int | None,
) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    if service_id is not None:
        service = db.get(CustomerService, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Customer service not found")
        if service.customer_id != customer.id:
            raise HTTPException(
                status_code=400, detail="Service does not belong to customer"
            )
    return customer
