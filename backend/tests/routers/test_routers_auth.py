import pytest
from app.deps import get_current_principal, require_admin
from app.routers import bookings, slots
from fastapi import APIRouter
from fastapi.routing import APIRoute


@pytest.mark.parametrize("api_router", [slots.router, bookings.router])
def test_router_requires_bearer_token(api_router: APIRouter) -> None:
    # Router-level dependency must include Bearer token verification
    assert any(dep.dependency == get_current_principal for dep in api_router.dependencies)

    # Each route should inherit the auth dependency
    for route in api_router.routes:
        if not isinstance(route, APIRoute):
            continue
        assert any(dep.call == get_current_principal for dep in route.dependant.dependencies)


def test_slot_mutations_require_admin() -> None:
    for route in slots.router.routes:
        if not isinstance(route, APIRoute):
            continue
        needs_admin = any(dep.call == require_admin for dep in route.dependant.dependencies)
        assert needs_admin == bool(route.methods & {"PUT", "PATCH", "DELETE"}), route.path
